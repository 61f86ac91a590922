class PortionPerfectError(Exception):
    pass


class RetrievalError(PortionPerfectError):
    """The shop directory or order store could not be reached."""


class EmptyListError(PortionPerfectError):
    pass


class InvalidTransitionError(PortionPerfectError):
    pass


class OrderItemIndexError(PortionPerfectError, IndexError):
    pass


class UnauthorizedError(PortionPerfectError):
    pass


class OrderNotFound(PortionPerfectError):
    pass


class ShopNotFound(PortionPerfectError):
    pass


class RecipeGenerationError(PortionPerfectError):
    pass
