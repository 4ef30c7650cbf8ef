"""Protobuf response frames carried in confirmed transaction data.

A confirmed transaction's ``data`` field is the hex encoding of a
``cosmos.base.abci.v1beta1.TxMsgData``: a repeated, length-delimited list of
per-message responses. Older chains fill the deprecated ``data`` field
(``MsgData{msg_type, data}``), newer ones fill ``msg_responses``
(``google.protobuf.Any{type_url, value}``). Both have the same wire shape,
so a single ``MsgData`` descriptor decodes either.

The descriptors are assembled at import time so no generated ``_pb2``
modules are needed.
"""

import json
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError as ProtoDecodeError
from pydantic import TypeAdapter, ValidationError

from cwharness.errors import DecodeError, ExpectedAtLeastOneMsgResponse, FrameDecodeError

_F = descriptor_pb2.FieldDescriptorProto
_PACKAGE = "cwharness.tx"

# (name, number, type, label, type_name)
_MESSAGES: dict[str, list[tuple[str, int, int, int, str]]] = {
    "MsgData": [
        ("msg_type", 1, _F.TYPE_STRING, _F.LABEL_OPTIONAL, ""),
        ("data", 2, _F.TYPE_BYTES, _F.LABEL_OPTIONAL, ""),
    ],
    "TxMsgData": [
        ("data", 1, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, f".{_PACKAGE}.MsgData"),
        ("msg_responses", 2, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, f".{_PACKAGE}.MsgData"),
    ],
    "MsgStoreCodeResponse": [
        ("code_id", 1, _F.TYPE_UINT64, _F.LABEL_OPTIONAL, ""),
        ("checksum", 2, _F.TYPE_BYTES, _F.LABEL_OPTIONAL, ""),
    ],
    "MsgInstantiateContractResponse": [
        ("address", 1, _F.TYPE_STRING, _F.LABEL_OPTIONAL, ""),
        ("data", 2, _F.TYPE_BYTES, _F.LABEL_OPTIONAL, ""),
    ],
    "MsgExecuteContractResponse": [
        ("data", 1, _F.TYPE_BYTES, _F.LABEL_OPTIONAL, ""),
    ],
}


def _build_messages() -> dict[str, type]:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="cwharness/tx.proto",
        package=_PACKAGE,
        syntax="proto3",
    )
    for message_name, fields in _MESSAGES.items():
        message = file_proto.message_type.add(name=message_name)
        for name, number, type_, label, type_name in fields:
            field = message.field.add(name=name, number=number, type=type_, label=label)
            if type_name:
                field.type_name = type_name

    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(file_proto.SerializeToString())

    return {
        name: message_factory.GetMessageClass(pool.FindMessageTypeByName(f"{_PACKAGE}.{name}"))
        for name in _MESSAGES
    }


messages = _build_messages()

MsgData = messages["MsgData"]
TxMsgData = messages["TxMsgData"]
MsgStoreCodeResponse = messages["MsgStoreCodeResponse"]
MsgInstantiateContractResponse = messages["MsgInstantiateContractResponse"]
MsgExecuteContractResponse = messages["MsgExecuteContractResponse"]


def _parse(message_cls: type, payload: bytes):
    message = message_cls()
    try:
        message.ParseFromString(payload)
    except ProtoDecodeError as e:
        raise FrameDecodeError(f"invalid {message_cls.DESCRIPTOR.name} frame: {e}") from e
    return message


T = TypeVar("T")


class ResponseType(Protocol):
    @classmethod
    def from_bytes(cls, payload: bytes) -> Any: ...


R = TypeVar("R", bound=ResponseType)


@dataclass(frozen=True)
class CodeId:
    """Numeric handle of stored wasm bytecode."""
    value: int

    def __str__(self) -> str:
        return str(self.value)

    def __int__(self) -> int:
        return self.value

    @classmethod
    def from_bytes(cls, payload: bytes) -> "CodeId":
        return cls(_parse(MsgStoreCodeResponse, payload).code_id)


@dataclass(frozen=True)
class ContractAddress:
    """Chain-native address of an instantiated contract."""
    address: str

    def __str__(self) -> str:
        return self.address

    @classmethod
    def from_bytes(cls, payload: bytes) -> "ContractAddress":
        return cls(_parse(MsgInstantiateContractResponse, payload).address)


@dataclass(frozen=True)
class ExecuteResponse:
    """Raw bytes returned by a contract execution."""
    data: bytes

    @classmethod
    def from_bytes(cls, payload: bytes) -> "ExecuteResponse":
        return cls(_parse(MsgExecuteContractResponse, payload).data)

    def decode(self, type_: type[T] | None = None) -> T | Any:
        """Decode the response as JSON, validated into ``type_`` when given."""
        try:
            if type_ is None:
                return json.loads(self.data)
            return TypeAdapter(type_).validate_json(self.data)
        except (ValueError, ValidationError) as e:
            raise DecodeError(f"invalid execute response: {e}") from e


def first_response_frame(hex_data: str) -> bytes:
    """Return the payload of the first message response in ``hex_data``."""
    try:
        raw = bytes.fromhex(hex_data)
    except ValueError as e:
        raise FrameDecodeError(f"invalid hex in transaction data: {e}") from e

    tx_msg_data = _parse(TxMsgData, raw)
    frames = list(tx_msg_data.data) or list(tx_msg_data.msg_responses)
    if not frames:
        raise ExpectedAtLeastOneMsgResponse()
    return frames[0].data


def decode_tx_data(hex_data: str, response_type: type[R]) -> R:
    """Decode the first response frame of a confirmed transaction."""
    return response_type.from_bytes(first_response_frame(hex_data))
