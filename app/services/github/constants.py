"""Constants for GitHub service."""

# Git file modes accepted for tree entries
FILE_MODE_REGULAR = "100644"
FILE_MODE_EXECUTABLE = "100755"

# Rate limiter scopes, one per Git Data endpoint family
SCOPE_BLOBS = "git.blobs"
SCOPE_TREES = "git.trees"
SCOPE_COMMITS = "git.commits"
SCOPE_REFS = "git.refs"

# GitHub rate-limit response headers
HEADER_RETRY_AFTER = "Retry-After"
HEADER_REMAINING = "X-RateLimit-Remaining"
HEADER_RESET = "X-RateLimit-Reset"
HEADER_RESOURCE = "X-RateLimit-Resource"
