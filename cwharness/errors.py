"""Exception hierarchy for cwharness."""

from collections.abc import Sequence


class HarnessError(Exception):
    """Base class for every error raised by cwharness."""


class CommandError(HarnessError):
    """An external command could not be spawned or exited unsuccessfully."""

    def __init__(
        self,
        argv: Sequence[str],
        returncode: int | None = None,
        stderr: str = "",
        reason: str | None = None,
    ):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        self.reason = reason

        program = self.argv[0] if self.argv else "<empty>"
        if reason is not None:
            message = f"{program}: {reason}"
        else:
            message = f"{program} exited with status {returncode}"
        if stderr.strip():
            message += f"\n{stderr.strip()}"
        super().__init__(message)


class DecodeError(HarnessError):
    """Output of an external command could not be deserialized."""


class FrameDecodeError(DecodeError):
    """Hex or length-delimited protobuf frame could not be decoded."""


class ExpectedAtLeastOneMsgResponse(FrameDecodeError):
    """A confirmed transaction carried no message response frames."""

    def __init__(self) -> None:
        super().__init__("expected at least one message response in transaction data")


class TxExecuteError(HarnessError):
    """A transaction or query was rejected; the message is the raw log verbatim."""

    def __init__(self, raw_log: str):
        self.raw_log = raw_log
        super().__init__(raw_log)


class NoSignerError(HarnessError):
    """No signing key was given and the network has no keys."""

    def __init__(self, network: str):
        super().__init__(f"no signer available for {network}")


class PollTimeoutError(HarnessError):
    """A caller-imposed polling bound was exhausted."""


class UnsupportedOperationError(HarnessError):
    """The backend does not support the requested operation."""


class InvalidMnemonicError(HarnessError):
    """A mnemonic phrase failed BIP-39 validation."""
