"""
GEO Writer: SEO article production for client accounts.

Fetches a client brief, generates keywords, outline and section prose,
post-processes the HTML (readability, internal links), attaches a cover
image, publishes to WordPress and reports URLs to the task trackers.
"""

__version__ = "1.0.0"
