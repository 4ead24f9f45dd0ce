"""
Error taxonomy for EduPlan.

Input and device errors are reported where they happen. Generation errors
come from the Generation Client boundary, already classified, so callers
never inspect message text to tell a credential problem from anything else.
"""


class EduPlanError(Exception):
    """Base class for all EduPlan errors.

    ``user_message`` is safe to show in the UI; the exception text itself
    may carry internal detail and is only logged.
    """

    default_message = "Algo deu errado. Tente novamente."

    def __init__(self, message=None, user_message=None):
        super().__init__(message or user_message or self.default_message)
        self.user_message = user_message or self.default_message


class InputValidationError(EduPlanError):
    """Rejected passcode or form input."""

    default_message = "Verifique os dados informados."


class DeviceAccessError(EduPlanError):
    """Camera permission denied or no capture device available."""

    default_message = "Acesso à câmera negado."


class GenerationError(EduPlanError):
    """The external generation service failed."""

    default_message = "A IA não respondeu. Tente conectar novamente."


class CredentialError(GenerationError):
    """The generation service reports a missing or invalid API credential."""

    default_message = "Chave de acesso da IA ausente ou inválida."


class GenerationInProgressError(EduPlanError):
    """A generation call is already in flight for this controller."""

    default_message = "Aguarde a geração atual terminar."
