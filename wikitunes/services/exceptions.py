"""Domain-specific exceptions."""


class ServiceError(Exception):
    pass


class SearchUnavailable(ServiceError):
    """The article search could not be performed; aborts the whole resolve."""


class MediaListUnavailable(ServiceError):
    """Listing one article's media failed; callers treat it as no media."""


class FileResolutionFailed(ServiceError):
    """One hosting backend failed to resolve a file; callers try the next one."""


class SelectionNotFound(ServiceError):
    pass
