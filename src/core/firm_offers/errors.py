class FirmOfferLifecycleError(Exception):
    pass


class FirmOfferNotFoundError(FirmOfferLifecycleError):
    pass


class TokenNotFoundError(FirmOfferLifecycleError):
    def __init__(self) -> None:
        super().__init__("FIRM_OFFER_NOT_FOUND")


class InvalidTransitionError(FirmOfferLifecycleError):
    pass


class AlreadyDecidedError(FirmOfferLifecycleError):
    def __init__(self) -> None:
        super().__init__("SPEAKER_ALREADY_DECIDED")


class MissingRequiredFieldError(FirmOfferLifecycleError):
    def __init__(self, field_name: str) -> None:
        super().__init__(f"MISSING_REQUIRED_FIELD: {field_name}")
        self.field_name = field_name
