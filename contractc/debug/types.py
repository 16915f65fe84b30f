"""
Type mapping for debug and ABI metadata.

Every source type projects onto two vocabularies: the VM stack item kind
stored in the debug document, and the ABI parameter type used by manifests.
"""

from enum import Enum, IntEnum
from typing import Optional, Tuple

from ..ir.nodes import TypeRef, TypeKind


class ParamType(IntEnum):
    """ABI parameter types."""
    ANY = 0x00
    BOOLEAN = 0x10
    INTEGER = 0x11
    BYTE_ARRAY = 0x12
    STRING = 0x13
    HASH160 = 0x14
    HASH256 = 0x15
    PUBLIC_KEY = 0x16
    SIGNATURE = 0x17
    ARRAY = 0x20
    MAP = 0x22
    INTEROP_INTERFACE = 0x30
    VOID = 0xFF

    def __str__(self):
        return PARAM_TYPE_NAMES[self]


PARAM_TYPE_NAMES = {
    ParamType.ANY: 'Any',
    ParamType.BOOLEAN: 'Boolean',
    ParamType.INTEGER: 'Integer',
    ParamType.BYTE_ARRAY: 'ByteArray',
    ParamType.STRING: 'String',
    ParamType.HASH160: 'Hash160',
    ParamType.HASH256: 'Hash256',
    ParamType.PUBLIC_KEY: 'PublicKey',
    ParamType.SIGNATURE: 'Signature',
    ParamType.ARRAY: 'Array',
    ParamType.MAP: 'Map',
    ParamType.INTEROP_INTERFACE: 'InteropInterface',
    ParamType.VOID: 'Void',
}


class StackItemType(Enum):
    """VM runtime value kinds."""
    ANY = 'Any'
    BOOLEAN = 'Boolean'
    INTEGER = 'Integer'
    BYTE_STRING = 'ByteString'
    ARRAY = 'Array'
    STRUCT = 'Struct'
    MAP = 'Map'
    INTEROP_INTERFACE = 'InteropInterface'

    def __str__(self):
        return self.value


# Library types with a fixed ABI type, regardless of representation.
INTEROP_TYPES = {
    'interop.Hash160': ParamType.HASH160,
    'interop.Hash256': ParamType.HASH256,
    'interop.PublicKey': ParamType.PUBLIC_KEY,
    'interop.Signature': ParamType.SIGNATURE,
}

# Ledger enumerations are plain integers.
LEDGER_ENUMS = ('ParameterType', 'SignerScope', 'WitnessAction',
                'WitnessConditionType', 'VMState')

LEDGER_PACKAGES = ('ledger', 'management')

BASIC_TYPES = {
    TypeKind.INT: (ParamType.INTEGER, StackItemType.INTEGER),
    TypeKind.BOOL: (ParamType.BOOLEAN, StackItemType.BOOLEAN),
    TypeKind.STRING: (ParamType.STRING, StackItemType.BYTE_STRING),
    TypeKind.BYTES: (ParamType.BYTE_ARRAY, StackItemType.BYTE_STRING),
    TypeKind.ARRAY: (ParamType.ARRAY, StackItemType.ARRAY),
    TypeKind.MAP: (ParamType.MAP, StackItemType.MAP),
    TypeKind.STRUCT: (ParamType.ARRAY, StackItemType.STRUCT),
}


def interop_types(name: str) -> Tuple[ParamType, StackItemType]:
    """Map a library type such as "interop.Hash160" or "ledger.Block"."""
    if name in INTEROP_TYPES:
        return INTEROP_TYPES[name], StackItemType.BYTE_STRING
    pkg, _, local = name.rpartition('.')
    pkg = pkg.rsplit('/', 1)[-1]
    if pkg in LEDGER_PACKAGES:
        if local in LEDGER_ENUMS:
            return ParamType.INTEGER, StackItemType.INTEGER
        # Block, Transaction, Contract and friends are arrays of fields.
        return ParamType.ARRAY, StackItemType.ARRAY
    return ParamType.INTEROP_INTERFACE, StackItemType.INTEROP_INTERFACE


def sc_and_vm_types(typ: Optional[TypeRef]) -> Tuple[ParamType, StackItemType]:
    """
    Project a source type onto (ABI type, VM type).

    Unknown or missing types map to Any in both vocabularies.
    """
    if typ is None:
        return ParamType.ANY, StackItemType.ANY
    if typ.kind == TypeKind.INTEROP:
        if not typ.name:
            return ParamType.INTEROP_INTERFACE, StackItemType.INTEROP_INTERFACE
        return interop_types(typ.name)
    return BASIC_TYPES.get(typ.kind, (ParamType.ANY, StackItemType.ANY))
