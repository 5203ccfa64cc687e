"""Fatal errors raised outside the account core"""


class PaymentsEngineError(Exception):
    """Base exception for the payments engine"""

    pass


class InputFileError(PaymentsEngineError):
    """Input file is missing or unreadable"""

    pass


class TransactionParseError(PaymentsEngineError):
    """A row cannot be turned into a transaction record"""

    def __init__(self, line_number: int, detail: str):
        self.line_number = line_number
        self.detail = detail
        super().__init__(f"line {line_number}: {detail}")
