class FridgeError(Exception):
    """Base error; ``status_code`` is what the API answers with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FridgeError):
    status_code = 400


class NotFoundError(FridgeError):
    status_code = 404


class StoreError(FridgeError):
    status_code = 500


class ExtractionError(FridgeError):
    status_code = 502


class ReceiptParseError(ExtractionError):
    """The model answered, but not with a JSON array of items."""
