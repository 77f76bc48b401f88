"""SiteTree CMS core: versioned pages, page comments, spam protection and reports."""

__version__ = "1.0.0"
