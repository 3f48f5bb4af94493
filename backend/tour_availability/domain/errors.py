class AvailabilityError(Exception):
    """Base class for availability domain errors."""


class AvailabilityProviderError(AvailabilityError):
    """The external inventory provider failed or returned unusable data."""


class ProductMappingNotFoundError(AvailabilityProviderError):
    """No provider activity id is configured for a product key."""


class TourNotFoundError(AvailabilityError):
    pass


class InvalidDateRangeError(AvailabilityError):
    pass


class StaleRequestError(AvailabilityError):
    """A newer slot request superseded this one before it resolved."""
