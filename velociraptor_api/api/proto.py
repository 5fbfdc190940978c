"""
Wire Messages.

Protobuf message classes and gRPC stub for the parts of the server's
`proto.API` service the client talks to:

    rpc Query(VQLCollectorArgs) returns (stream VQLResponse)
    rpc VFSGetBuffer(VFSFileBuffer) returns (VFSFileBuffer)

The messages are declared from a FileDescriptorProto in a private
descriptor pool, so no protoc step is needed. Field names and numbers
follow the server's api.proto / vql.proto.
"""

import grpc
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

_F = descriptor_pb2.FieldDescriptorProto

_PACKAGE = "proto"
_SERVICE = f"/{_PACKAGE}.API"

QUERY_METHOD = f"{_SERVICE}/Query"
VFS_GET_BUFFER_METHOD = f"{_SERVICE}/VFSGetBuffer"


def _field(
    name: str,
    number: int,
    field_type: int,
    repeated: bool = False,
    type_name: str | None = None,
) -> descriptor_pb2.FieldDescriptorProto:
    field = _F(
        name=name,
        number=number,
        type=field_type,
        label=_F.LABEL_REPEATED if repeated else _F.LABEL_OPTIONAL,
    )
    if type_name:
        field.type_name = f".{_PACKAGE}.{type_name}"
    return field


def _message(name: str, *fields: descriptor_pb2.FieldDescriptorProto) -> descriptor_pb2.DescriptorProto:
    return descriptor_pb2.DescriptorProto(name=name, field=list(fields))


def _file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    return descriptor_pb2.FileDescriptorProto(
        name="velociraptor_api/api.proto",
        package=_PACKAGE,
        syntax="proto3",
        message_type=[
            _message(
                "VQLRequest",
                _field("Name", 1, _F.TYPE_STRING),
                _field("VQL", 2, _F.TYPE_STRING),
            ),
            _message(
                "VQLEnv",
                _field("key", 1, _F.TYPE_STRING),
                _field("value", 2, _F.TYPE_STRING),
            ),
            _message(
                "VQLCollectorArgs",
                _field("Query", 2, _F.TYPE_MESSAGE, repeated=True, type_name="VQLRequest"),
                _field("env", 3, _F.TYPE_MESSAGE, repeated=True, type_name="VQLEnv"),
                _field("max_row", 4, _F.TYPE_UINT64),
                _field("max_wait", 6, _F.TYPE_UINT64),
                _field("ops_per_second", 24, _F.TYPE_FLOAT),
                _field("timeout", 25, _F.TYPE_UINT64),
                _field("org_id", 33, _F.TYPE_STRING),
            ),
            _message(
                "VQLTypeMap",
                _field("column", 1, _F.TYPE_STRING),
                _field("type", 2, _F.TYPE_STRING),
            ),
            _message(
                "VQLResponse",
                _field("Response", 1, _F.TYPE_STRING),
                _field("Columns", 2, _F.TYPE_STRING, repeated=True),
                _field("Query", 3, _F.TYPE_MESSAGE, type_name="VQLRequest"),
                _field("timestamp", 4, _F.TYPE_UINT64),
                _field("query_id", 5, _F.TYPE_UINT64),
                _field("part", 6, _F.TYPE_UINT64),
                _field("total_rows", 7, _F.TYPE_UINT64),
                _field("types", 8, _F.TYPE_MESSAGE, repeated=True, type_name="VQLTypeMap"),
                _field("log", 9, _F.TYPE_STRING),
            ),
            _message(
                "VFSFileBuffer",
                _field("client_id", 1, _F.TYPE_STRING),
                _field("vfs_path", 2, _F.TYPE_STRING),
                _field("offset", 3, _F.TYPE_UINT64),
                _field("length", 4, _F.TYPE_UINT32),
                _field("data", 5, _F.TYPE_BYTES),
                _field("components", 6, _F.TYPE_STRING, repeated=True),
            ),
        ],
    )


_pool = descriptor_pool.DescriptorPool()
_pool.Add(_file_descriptor())


def _message_class(name: str) -> type:
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{_PACKAGE}.{name}"))


VQLRequest = _message_class("VQLRequest")
VQLEnv = _message_class("VQLEnv")
VQLCollectorArgs = _message_class("VQLCollectorArgs")
VQLTypeMap = _message_class("VQLTypeMap")
VQLResponse = _message_class("VQLResponse")
VFSFileBuffer = _message_class("VFSFileBuffer")


class APIStub:
    """Client stub for the two API calls used by this package."""

    def __init__(self, channel: grpc.aio.Channel) -> None:
        self.Query = channel.unary_stream(
            QUERY_METHOD,
            request_serializer=VQLCollectorArgs.SerializeToString,
            response_deserializer=VQLResponse.FromString,
        )
        self.VFSGetBuffer = channel.unary_unary(
            VFS_GET_BUFFER_METHOD,
            request_serializer=VFSFileBuffer.SerializeToString,
            response_deserializer=VFSFileBuffer.FromString,
        )
