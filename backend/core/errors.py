from fastapi import status


class StockError(Exception):
    """Base error for inventory operations; rendered as {"detail", "code"}."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "stock_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(StockError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class InsufficientQuantityError(StockError):
    status_code = status.HTTP_409_CONFLICT
    code = "insufficient_quantity"


class InactiveError(StockError):
    status_code = status.HTTP_409_CONFLICT
    code = "inactive"


class PromoterHoldingError(StockError):
    """Promoter does not hold enough of the size; retry with force=True to override."""

    status_code = status.HTTP_409_CONFLICT
    code = "promoter_does_not_hold"


class ValidationError(StockError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid"
