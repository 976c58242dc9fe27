class StorefrontError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class AuthenticationError(StorefrontError):
    """The webhook request could not be proven to come from the gateway."""


class OrderLookupError(StorefrontError):
    """Reading the order store failed; distinct from the order being absent."""


class TransportError(StorefrontError):
    """Email could not be handed to the SMTP relay."""


class MalformedEventError(StorefrontError):
    """A verified webhook body that does not have the expected envelope shape."""
