"""Vulkan interop bindings generator for C#.

Generates typed C# bindings from the Khronos vk.xml spec: handle wrappers,
sequential-layout structs, enums and flag enums, and unmanaged function
pointer delegates for commands. Output is limited to the enabled features,
extension authors and platforms.

Usage:
    python vkcsgen.py --vk-xml External/Vulkan-Docs/xml/vk.xml \
        --feature VK_VERSION_1_0 VK_VERSION_1_1 --author KHR EXT --platform win32
"""

import argparse
import enum
import re
import sys
import xml.etree.ElementTree as ET
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

PROJECT_ROOT = Path(__file__).parent
DEFAULT_VK_XML = PROJECT_ROOT / "External" / "Vulkan-Docs" / "xml" / "vk.xml"
DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "Generated"
DEFAULT_NAMESPACE = "Vulkan.Native"
DEFAULT_API = "vulkan"
DEFAULT_FEATURES: tuple[str, ...] = ("VK_VERSION_1_0",)
DEFAULT_AUTHORS: tuple[str, ...] = ("KHR", "EXT")
DEFAULT_PLATFORMS: tuple[str, ...] = ("win32",)


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    vk_xml: Path
    output_dir: Path
    namespace: str
    api: str
    features: frozenset[str]
    authors: frozenset[str]
    platforms: frozenset[str]


@dataclass(frozen=True)
class DiscoveryConfig:
    command: str
    filter_text: str | None
    vk_xml: Path
    api: str


VALID_ERROR_CODES = {
    "INVALID_FEATURE_NAME",
    "INVALID_AUTHOR",
    "INVALID_PLATFORM",
    "INVALID_NAMESPACE",
    "CONFLICT_GENERATE_DISCOVERY",
    "FILTER_WITHOUT_LIST",
    "PATH_NOT_FOUND",
}
_FEATURE_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]*(_[A-Za-z0-9]+)+$")
_AUTHOR_RE = re.compile(r"^[A-Z][A-Z0-9]*$")
_PLATFORM_RE = re.compile(r"^[a-z][a-z0-9_]*$")
_NAMESPACE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def validate_feature_name(name: str) -> str:
    if _FEATURE_NAME_RE.match(name):
        return name
    raise ConfigError(
        "INVALID_FEATURE_NAME",
        f"Invalid feature name: {name}",
        "Feature names look like VK_VERSION_1_0.",
    )


def validate_author(name: str) -> str:
    if _AUTHOR_RE.match(name):
        return name
    raise ConfigError(
        "INVALID_AUTHOR",
        f"Invalid extension author: {name}",
        "Authors are upper-case vendor tags such as KHR, EXT or NV.",
    )


def validate_platform(name: str) -> str:
    if _PLATFORM_RE.match(name):
        return name
    raise ConfigError(
        "INVALID_PLATFORM",
        f"Invalid platform name: {name}",
        "Platform names are lower-case registry names such as win32 or xlib.",
    )


def validate_namespace(name: str) -> str:
    if _NAMESPACE_RE.match(name):
        return name
    raise ConfigError(
        "INVALID_NAMESPACE",
        f"Invalid C# namespace: {name}",
        "Use dotted identifiers, for example Vulkan.Native.",
    )


def validate_path_exists(
    path: Path | None, flag: str, suggestion: str | None = None
) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"{flag} is required: no path provided.",
            suggestion or f"Pass the path explicitly: {flag} /path/to/resource",
        )
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {flag} does not exist: {path}",
        suggestion or "Provide an existing path for this flag.",
    )


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate Vulkan bindings for C#")

    parser.add_argument("--vk-xml", type=Path, default=DEFAULT_VK_XML)
    parser.add_argument("--output-dir", type=Path, default=DEFAULT_OUTPUT_DIR)
    parser.add_argument("--namespace", type=str, default=None)
    parser.add_argument("--api", type=str, default=DEFAULT_API)

    parser.add_argument("--feature", action="append", nargs="+", default=None)
    parser.add_argument("--author", action="append", nargs="+", default=None)
    parser.add_argument("--platform", action="append", nargs="+", default=None)

    discovery_group = parser.add_mutually_exclusive_group()
    discovery_group.add_argument("--list-features", action="store_true", default=False)
    discovery_group.add_argument(
        "--list-extensions", action="store_true", default=False
    )

    parser.add_argument("--filter", type=str, default=None)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def normalize_names(raw_names: object, flag: str, code: str) -> tuple[str, ...]:
    """Flatten the nested lists produced by ``action="append", nargs="+"``."""
    if raw_names is None:
        return tuple()
    if not isinstance(raw_names, list):
        raise ConfigError(
            code,
            f"Invalid {flag} value type: {type(raw_names).__name__}",
            f"Pass names as {flag} NAME [NAME ...].",
        )

    normalized: list[str] = []
    for entry in raw_names:
        if isinstance(entry, str):
            normalized.append(entry)
            continue
        if isinstance(entry, list):
            for name in entry:
                if not isinstance(name, str):
                    raise ConfigError(
                        code,
                        f"Invalid {flag} name type: {type(name).__name__}",
                        f"Pass names as {flag} NAME [NAME ...].",
                    )
                normalized.append(name)
            continue
        raise ConfigError(
            code,
            f"Invalid {flag} entry type: {type(entry).__name__}",
            f"Pass names as {flag} NAME [NAME ...].",
        )

    return tuple(normalized)


_VK_XML_SUGGESTION = (
    "Clone Vulkan-Docs:\n"
    "  git clone https://github.com/KhronosGroup/Vulkan-Docs.git External/Vulkan-Docs\n"
    "Or pass a custom path: --vk-xml /your/path/to/vk.xml"
)


def validate_config(args: argparse.Namespace) -> GenerateConfig | DiscoveryConfig:
    raw_features = normalize_names(args.feature, "--feature", "INVALID_FEATURE_NAME")
    raw_authors = normalize_names(args.author, "--author", "INVALID_AUTHOR")
    raw_platforms = normalize_names(args.platform, "--platform", "INVALID_PLATFORM")
    has_generate_input = bool(
        raw_features or raw_authors or raw_platforms or args.namespace is not None
    )
    has_discovery_command = bool(args.list_features or args.list_extensions)

    if args.filter and not args.list_extensions:
        raise ConfigError(
            "FILTER_WITHOUT_LIST",
            "--filter requires --list-extensions.",
            "Add --list-extensions or remove --filter.",
        )

    if has_generate_input and has_discovery_command:
        raise ConfigError(
            "CONFLICT_GENERATE_DISCOVERY",
            "Generate flags cannot be combined with discovery flags.",
            "Choose either generate mode or one discovery command.",
        )

    vk_xml = validate_path_exists(args.vk_xml, "--vk-xml", _VK_XML_SUGGESTION)

    if has_discovery_command:
        command = "list-features" if args.list_features else "list-extensions"
        return DiscoveryConfig(
            command=command,
            filter_text=args.filter,
            vk_xml=vk_xml,
            api=args.api,
        )

    features = raw_features or DEFAULT_FEATURES
    authors = raw_authors or DEFAULT_AUTHORS
    platforms = raw_platforms or DEFAULT_PLATFORMS
    namespace = args.namespace if args.namespace is not None else DEFAULT_NAMESPACE

    return GenerateConfig(
        vk_xml=vk_xml,
        output_dir=args.output_dir,
        namespace=validate_namespace(namespace),
        api=args.api,
        features=frozenset(validate_feature_name(name) for name in features),
        authors=frozenset(validate_author(name) for name in authors),
        platforms=frozenset(validate_platform(name) for name in platforms),
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig | DiscoveryConfig:
    return validate_config(parse_args(argv))


# ===--- Constants ---=== #

C_TO_CSHARP = {
    "char": "sbyte",
    "uint8_t": "byte",
    "int8_t": "sbyte",
    "uint16_t": "ushort",
    "int16_t": "short",
    "uint32_t": "uint",
    "int32_t": "int",
    "uint64_t": "ulong",
    "int64_t": "long",
    "size_t": "ulong",
    "VkBool32": "Bool32",
    "VkFlags": "uint",
    "VkFlags64": "ulong",
    "VkDeviceSize": "ulong",
    "VkDeviceAddress": "ulong",
    "VkSampleMask": "uint",
    "PFN_vkVoidFunction": "void*",
}

# Platform-specific types mapped to size-compatible C# types.
PLATFORM_TYPES = {
    "LPCWSTR": "char*",
    "DWORD": "uint",
    "HANDLE": "void*",
    "HINSTANCE": "void*",
    "HWND": "void*",
    "HMONITOR": "void*",
    "SECURITY_ATTRIBUTES": "void",
    "Display": "void",
    "Window": "ulong",
    "VisualID": "ulong",
    "RROutput": "ulong",
    "xcb_connection_t": "void",
    "xcb_window_t": "uint",
    "xcb_visualid_t": "uint",
    "wl_display": "void",
    "wl_surface": "void",
    "ANativeWindow": "void",
    "AHardwareBuffer": "void",
    "CAMetalLayer": "void",
    "zx_handle_t": "uint",
}

FLAG_BITS_SUFFIX = "FlagBits"
FLAGS_SUFFIX = "Flags"
VOID_TYPE_NAME = "void"
BYTE_TYPE_NAME = "sbyte"

RESERVED_FIELD_NAMES = {
    "object": "obj",
    "event": "evt",
}
CSHARP_KEYWORDS = {
    "base",
    "checked",
    "fixed",
    "in",
    "lock",
    "operator",
    "out",
    "params",
    "ref",
    "string",
}

ARRAY_SIZE_CONSTANTS = {
    "VK_MAX_PHYSICAL_DEVICE_NAME_SIZE": 256,
    "VK_UUID_SIZE": 16,
    "VK_LUID_SIZE": 8,
    "VK_LUID_SIZE_KHR": 8,
    "VK_MAX_EXTENSION_NAME_SIZE": 256,
    "VK_MAX_DESCRIPTION_SIZE": 256,
    "VK_MAX_MEMORY_TYPES": 32,
    "VK_MAX_MEMORY_HEAPS": 16,
    "VK_MAX_DEVICE_GROUP_SIZE": 32,
    "VK_MAX_DEVICE_GROUP_SIZE_KHR": 32,
    "VK_MAX_DRIVER_NAME_SIZE": 256,
    "VK_MAX_DRIVER_NAME_SIZE_KHR": 256,
    "VK_MAX_DRIVER_INFO_SIZE": 256,
    "VK_MAX_DRIVER_INFO_SIZE_KHR": 256,
    "VK_MAX_GLOBAL_PRIORITY_SIZE": 16,
    "VK_MAX_GLOBAL_PRIORITY_SIZE_KHR": 16,
    "VK_MAX_GLOBAL_PRIORITY_SIZE_EXT": 16,
    "VK_MAX_SHADER_MODULE_IDENTIFIER_SIZE_EXT": 32,
    "VK_MAX_PIPELINE_BINARY_KEY_SIZE_KHR": 32,
    "VK_MAX_VIDEO_AV1_REFERENCES_PER_FRAME_KHR": 7,
    "VK_MAX_VIDEO_VP9_REFERENCES_PER_FRAME_KHR": 3,
    "VK_MAX_PHYSICAL_DEVICE_DATA_GRAPH_OPERATION_SET_NAME_SIZE_ARM": 128,
}

BITMASK_STORAGE_BY_WIDTH = {32: "uint", 64: "ulong"}

DISABLED_SUPPORT = "disabled"

ENUM_BASE_VALUE = 1000000000
ENUM_RANGE_SIZE = 1000


# ===--- Registry errors ---=== #

REGISTRY_ERROR_CODES = {
    "MALFORMED_INPUT",
    "UNRESOLVED_REFERENCE",
    "DUPLICATE_KEY",
}


class RegistryError(Exception):
    """Fatal registry construction failure.

    code is one of REGISTRY_ERROR_CODES: MALFORMED_INPUT for a missing
    mandatory field, UNRESOLVED_REFERENCE for an unknown symbolic constant or
    bit width, DUPLICATE_KEY for a name inserted twice into one partition.
    category and name locate the offending record in the source document.
    """

    def __init__(
        self,
        code: str,
        message: str,
        category: str | None = None,
        name: str | None = None,
    ):
        if code not in REGISTRY_ERROR_CODES:
            raise ValueError(f"Unknown registry error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.category = category
        self.name = name


# ===--- Raw record model ---=== #


@dataclass(frozen=True)
class RawTag:
    name: str | None


@dataclass(frozen=True)
class RawPlatform:
    name: str | None
    protect: str | None
    comment: str | None


@dataclass(frozen=True)
class RawTypeMember:
    name: str | None
    type: str | None
    type_modifiers: tuple[str, ...]
    array_size: str | None
    values: str | None
    optional: str | None
    length: str | None
    api: str | None


@dataclass(frozen=True)
class RawType:
    category: str | None
    name_attribute: str | None
    name_element: str | None
    type: str | None
    requires: str | None
    bitvalues: str | None
    alias: str | None
    parent: str | None
    api: str | None
    members: tuple[RawTypeMember, ...]
    text: tuple[str, ...]

    @property
    def name(self) -> str | None:
        if self.name_attribute is not None:
            return self.name_attribute
        return self.name_element


@dataclass(frozen=True)
class RawEnumValue:
    name: str | None
    value: str | None
    bitpos: str | None
    alias: str | None
    type: str | None
    extends: str | None
    offset: str | None
    extnumber: str | None
    direction: str | None
    api: str | None


@dataclass(frozen=True)
class RawEnums:
    name: str | None
    type: str | None
    bitwidth: str | None
    values: tuple[RawEnumValue, ...]


@dataclass(frozen=True)
class RawCommandParam:
    name: str | None
    type: str | None
    type_modifiers: tuple[str, ...]
    optional: str | None
    length: str | None
    api: str | None


@dataclass(frozen=True)
class RawCommand:
    name_attribute: str | None
    alias: str | None
    proto_name: str | None
    return_type: str | None
    success_codes: str | None
    error_codes: str | None
    api: str | None
    params: tuple[RawCommandParam, ...]

    @property
    def name(self) -> str | None:
        if self.proto_name is not None:
            return self.proto_name
        return self.name_attribute


@dataclass(frozen=True)
class RawRequire:
    api: str | None
    depends: str | None
    types: tuple[str | None, ...]
    commands: tuple[str | None, ...]
    enums: tuple[RawEnumValue, ...]


@dataclass(frozen=True)
class RawFeature:
    name: str | None
    api: str | None
    number: str | None
    requires: tuple[RawRequire, ...]


@dataclass(frozen=True)
class RawExtension:
    name: str | None
    number: str | None
    type: str | None
    author: str | None
    supported: str | None
    platform: str | None
    requires: tuple[RawRequire, ...]


@dataclass(frozen=True)
class RawRegistry:
    tags: tuple[RawTag, ...]
    platforms: tuple[RawPlatform, ...]
    types: tuple[RawType, ...]
    enums: tuple[RawEnums, ...]
    commands: tuple[RawCommand, ...]
    features: tuple[RawFeature, ...]
    extensions: tuple[RawExtension, ...]


def _child_text(el: ET.Element, tag: str) -> str | None:
    child = el.find(tag)
    if child is None:
        return None
    return child.text


def _text_fragments(el: ET.Element) -> tuple[str, ...]:
    """Return the stripped, non-empty text nodes around an element's children.

    For ``<member>const <type>void</type>* <name>pNext</name></member>`` this
    is ``("const", "*")``; these are the C type modifiers of the declaration.
    """
    fragments = [el.text] + [child.tail for child in el]
    return tuple(f.strip() for f in fragments if f and f.strip())


def parse_raw_member(m: ET.Element) -> RawTypeMember:
    return RawTypeMember(
        name=_child_text(m, "name"),
        type=_child_text(m, "type"),
        type_modifiers=_text_fragments(m),
        array_size=_child_text(m, "enum"),
        values=m.get("values"),
        optional=m.get("optional"),
        length=m.get("len"),
        api=m.get("api"),
    )


def parse_raw_type(t: ET.Element) -> RawType:
    return RawType(
        category=t.get("category"),
        name_attribute=t.get("name"),
        name_element=_child_text(t, "name"),
        type=_child_text(t, "type"),
        requires=t.get("requires"),
        bitvalues=t.get("bitvalues"),
        alias=t.get("alias"),
        parent=t.get("parent"),
        api=t.get("api"),
        members=tuple(parse_raw_member(m) for m in t.findall("member")),
        text=_text_fragments(t),
    )


def parse_raw_enum_value(val: ET.Element) -> RawEnumValue:
    return RawEnumValue(
        name=val.get("name"),
        value=val.get("value"),
        bitpos=val.get("bitpos"),
        alias=val.get("alias"),
        type=val.get("type"),
        extends=val.get("extends"),
        offset=val.get("offset"),
        extnumber=val.get("extnumber"),
        direction=val.get("dir"),
        api=val.get("api"),
    )


def parse_raw_enums(block: ET.Element) -> RawEnums:
    return RawEnums(
        name=block.get("name"),
        type=block.get("type"),
        bitwidth=block.get("bitwidth"),
        values=tuple(parse_raw_enum_value(v) for v in block.findall("enum")),
    )


def parse_raw_param(p: ET.Element) -> RawCommandParam:
    return RawCommandParam(
        name=_child_text(p, "name"),
        type=_child_text(p, "type"),
        type_modifiers=_text_fragments(p),
        optional=p.get("optional"),
        length=p.get("len"),
        api=p.get("api"),
    )


def parse_raw_command(cmd: ET.Element) -> RawCommand:
    proto = cmd.find("proto")
    return RawCommand(
        name_attribute=cmd.get("name"),
        alias=cmd.get("alias"),
        proto_name=_child_text(proto, "name") if proto is not None else None,
        return_type=_child_text(proto, "type") if proto is not None else None,
        success_codes=cmd.get("successcodes"),
        error_codes=cmd.get("errorcodes"),
        api=cmd.get("api"),
        params=tuple(parse_raw_param(p) for p in cmd.findall("param")),
    )


def parse_raw_require(req: ET.Element) -> RawRequire:
    return RawRequire(
        api=req.get("api"),
        depends=req.get("depends"),
        types=tuple(t.get("name") for t in req.findall("type")),
        commands=tuple(c.get("name") for c in req.findall("command")),
        enums=tuple(parse_raw_enum_value(e) for e in req.findall("enum")),
    )


def parse_raw_feature(feat: ET.Element) -> RawFeature:
    return RawFeature(
        name=feat.get("name"),
        api=feat.get("api"),
        number=feat.get("number"),
        requires=tuple(parse_raw_require(r) for r in feat.findall("require")),
    )


def parse_raw_extension(ext: ET.Element) -> RawExtension:
    return RawExtension(
        name=ext.get("name"),
        number=ext.get("number"),
        type=ext.get("type"),
        author=ext.get("author"),
        supported=ext.get("supported"),
        platform=ext.get("platform"),
        requires=tuple(parse_raw_require(r) for r in ext.findall("require")),
    )


def parse_raw_registry(root: ET.Element) -> RawRegistry:
    """Map a parsed registry root element onto the raw record model.

    Document order is preserved in every collection. No validation happens
    here beyond attribute/element presence: absent fields become None.
    """
    return RawRegistry(
        tags=tuple(RawTag(name=t.get("name")) for t in root.findall("tags/tag")),
        platforms=tuple(
            RawPlatform(
                name=p.get("name"),
                protect=p.get("protect"),
                comment=p.get("comment"),
            )
            for p in root.findall("platforms/platform")
        ),
        types=tuple(parse_raw_type(t) for t in root.findall("types/type")),
        enums=tuple(parse_raw_enums(e) for e in root.findall("enums")),
        commands=tuple(parse_raw_command(c) for c in root.findall("commands/command")),
        features=tuple(parse_raw_feature(f) for f in root.findall("feature")),
        extensions=tuple(
            parse_raw_extension(e) for e in root.findall("extensions/extension")
        ),
    )


def load_raw_registry(path: Path) -> RawRegistry:
    """Read and parse a registry document.

    Raises:
        OSError: The file cannot be opened.
        ET.ParseError: The document is not well-formed XML.
    """
    with open(path, "rb") as handle:
        root = ET.parse(handle).getroot()
    return parse_raw_registry(root)


# ===--- Name/type normalization ---=== #

_ARRAY_DIM_RE = re.compile(r"\[(\d+)\]")


def pointer_depth(tokens: Iterable[str] | None) -> int:
    if tokens is None:
        return 0
    return sum(token.count("*") for token in tokens)


def is_const(tokens: Iterable[str] | None) -> bool:
    if tokens is None:
        return False
    return any("const" in token for token in tokens)


def is_inline_array(tokens: Iterable[str] | None) -> bool:
    if tokens is None:
        return False
    return any("[" in token for token in tokens)


def array_length(
    tokens: Iterable[str] | None,
    size_token: str | None = None,
    constants: dict[str, int] | None = None,
) -> int:
    """Return the element count of an inline array declaration.

    A symbolic size token (the ``<enum>`` child of a member) is resolved via
    constants. Otherwise the bracketed integer dimensions in the modifier
    tokens are multiplied together, so ``[4][4]`` gives 16. Returns 0 when
    neither is present.

    Args:
        tokens: Modifier text fragments around the member's child elements.
        size_token: Symbolic size name, e.g. "VK_UUID_SIZE", or None.
        constants: Size table to resolve size_token against; defaults to
            ARRAY_SIZE_CONSTANTS.

    Raises:
        RegistryError: UNRESOLVED_REFERENCE for an unknown size constant.
    """
    if constants is None:
        constants = ARRAY_SIZE_CONSTANTS
    if size_token is not None:
        constant = size_token.strip()
        if constant not in constants:
            raise RegistryError(
                "UNRESOLVED_REFERENCE",
                f"Unknown array size constant: {constant}",
                category="constant",
                name=constant,
            )
        return constants[constant]

    dims = _ARRAY_DIM_RE.findall("".join(tokens or ()))
    if not dims:
        return 0
    total = 1
    for d in dims:
        total *= int(d)
    return total


def rename_flag_bits(name: str) -> str:
    return name.replace(FLAG_BITS_SUFFIX, FLAGS_SUFFIX)


def format_type_name(raw: str) -> str:
    if raw in C_TO_CSHARP:
        return C_TO_CSHARP[raw]
    if raw in PLATFORM_TYPES:
        return PLATFORM_TYPES[raw]
    return rename_flag_bits(raw)


def format_field_name(raw: str) -> str:
    if raw in RESERVED_FIELD_NAMES:
        return RESERVED_FIELD_NAMES[raw]
    if raw in CSHARP_KEYWORDS:
        return "@" + raw
    return raw


# ===--- Registry model ---=== #


class TypeCategory(enum.Enum):
    BASE_TYPE = "basetype"
    HANDLE = "handle"
    BITMASK = "bitmask"
    ENUM = "enum"
    STRUCT = "struct"


class Optionality(enum.Enum):
    """Three-state reading of the ``optional`` marker on a parameter.

    SEMI_OPTIONAL is the ``"true,false"`` form: the pointer may be null or the
    pointed-to value may be zero, but not both.
    """

    REQUIRED = "required"
    OPTIONAL = "optional"
    SEMI_OPTIONAL = "semi-optional"


def parse_optionality(marker: str | None) -> Optionality:
    if marker is None or "true" not in marker:
        return Optionality.REQUIRED
    if "false" in marker:
        return Optionality.SEMI_OPTIONAL
    return Optionality.OPTIONAL


@dataclass(frozen=True)
class Platform:
    name: str
    comment: str | None = None


@dataclass(frozen=True)
class EnumerationValue:
    """One named entry of an Enumeration.

    value is the literal from the registry, ``1 << bitpos`` for flag bits,
    the alias target's name for aliases, or None when nothing is given.
    Aliases are stored single-hop; Enumeration.resolve_value walks the chain.
    """

    name: str
    value: str | None
    bitpos: int | None = None
    alias: str | None = None


@dataclass(frozen=True)
class Enumeration:
    name: str
    values: tuple[EnumerationValue, ...]
    is_bitmask: bool
    bit_width: int | None = None

    def value_named(self, name: str) -> EnumerationValue | None:
        for value in self.values:
            if value.name == name:
                return value
        return None

    def resolve_value(self, name: str) -> str | None:
        """Return the terminal value of name, following aliases transitively.

        Returns None when name is unknown, when the chain leaves this
        enumeration, or when the chain loops back on itself.
        """
        seen: set[str] = set()
        current = self.value_named(name)
        while current is not None:
            if current.alias is None:
                return current.value
            if current.name in seen:
                return None
            seen.add(current.name)
            current = self.value_named(current.alias)
        return None


@dataclass(frozen=True)
class VulkanType:
    category: ClassVar[TypeCategory]
    name: str


@dataclass(frozen=True)
class BaseTypeDef(VulkanType):
    category: ClassVar[TypeCategory] = TypeCategory.BASE_TYPE
    type_name: str
    alias: str | None = None


@dataclass(frozen=True)
class HandleDef(VulkanType):
    category: ClassVar[TypeCategory] = TypeCategory.HANDLE
    parent: str | None = None
    alias: str | None = None


@dataclass(frozen=True)
class BitmaskDef(VulkanType):
    category: ClassVar[TypeCategory] = TypeCategory.BITMASK
    type_name: str | None = None
    requires: str | None = None
    alias: str | None = None


@dataclass(frozen=True)
class EnumDef(VulkanType):
    """A concrete enum type.

    name has FlagBits rewritten to Flags; declared_name keeps the registry
    spelling so feature/extension require lists still match.
    """

    category: ClassVar[TypeCategory] = TypeCategory.ENUM
    declared_name: str
    type_name: str | None = None
    is_bitmask: bool = False
    enumeration_name: str | None = None
    alias: str | None = None


@dataclass(frozen=True)
class StructMember:
    name: str
    type_name: str
    pointer_depth: int = 0
    is_const: bool = False
    is_array: bool = False
    array_length: int = 0
    value: str | None = None


@dataclass(frozen=True)
class StructDef(VulkanType):
    category: ClassVar[TypeCategory] = TypeCategory.STRUCT
    members: tuple[StructMember, ...] = ()
    alias: str | None = None


@dataclass(frozen=True)
class CommandParam:
    name: str
    type_name: str
    pointer_depth: int
    is_const: bool
    optionality: Optionality
    is_array: bool

    @property
    def optional(self) -> bool:
        return self.optionality is not Optionality.REQUIRED

    @property
    def semi_optional(self) -> bool:
        return self.optionality is Optionality.SEMI_OPTIONAL

    @property
    def _is_qualifiable(self) -> bool:
        return (
            self.type_name not in (VOID_TYPE_NAME, BYTE_TYPE_NAME)
            and self.pointer_depth > 0
        )

    @property
    def is_in_parameter(self) -> bool:
        return (
            self._is_qualifiable
            and self.optionality is Optionality.REQUIRED
            and not self.is_array
            and self.is_const
        )

    @property
    def is_out_parameter(self) -> bool:
        return (
            self._is_qualifiable
            and self.optionality is Optionality.REQUIRED
            and not self.is_array
            and not self.is_const
        )

    @property
    def is_ref_parameter(self) -> bool:
        return self._is_qualifiable and self.semi_optional

    @property
    def qualifier(self) -> str | None:
        if self.is_in_parameter:
            return "in"
        if self.is_out_parameter:
            return "out"
        if self.is_ref_parameter:
            return "ref"
        return None

    @property
    def signature_pointer_depth(self) -> int:
        """Pointer depth left after an in/out/ref qualifier takes one level."""
        if self.qualifier is not None:
            return self.pointer_depth - 1
        return self.pointer_depth


@dataclass(frozen=True)
class CommandDef:
    name: str
    return_type: str | None
    parameters: tuple[CommandParam, ...]
    alias: str | None = None
    success_codes: tuple[str, ...] = ()
    error_codes: tuple[str, ...] = ()

    @property
    def is_alias(self) -> bool:
        return self.alias is not None


@dataclass(frozen=True)
class Feature:
    name: str
    api: str | None
    number: str | None
    required_types: tuple[str, ...]
    required_commands: tuple[str, ...]


@dataclass(frozen=True)
class Extension:
    name: str
    number: int | None
    author: str
    ext_type: str | None
    platform: str | None
    supported: str | None
    required_types: tuple[str, ...]
    required_commands: tuple[str, ...]


@dataclass(frozen=True)
class TypeRegistry:
    base_types: dict[str, BaseTypeDef]
    bitmasks: dict[str, BitmaskDef]
    handles: dict[str, HandleDef]
    enums: dict[str, EnumDef]
    structs: dict[str, StructDef]

    def partition(self, category: TypeCategory) -> dict[str, VulkanType]:
        return {
            TypeCategory.BASE_TYPE: self.base_types,
            TypeCategory.HANDLE: self.handles,
            TypeCategory.BITMASK: self.bitmasks,
            TypeCategory.ENUM: self.enums,
            TypeCategory.STRUCT: self.structs,
        }[category]

    def lookup(self, name: str) -> VulkanType | None:
        """Find a type by name in any partition.

        Enums are matched on either their emitted or declared name.
        """
        for partition in (self.base_types, self.handles, self.bitmasks, self.structs):
            if name in partition:
                return partition[name]
        renamed = rename_flag_bits(name)
        if renamed in self.enums:
            return self.enums[renamed]
        return None

    def __len__(self) -> int:
        return (
            len(self.base_types)
            + len(self.bitmasks)
            + len(self.handles)
            + len(self.enums)
            + len(self.structs)
        )


@dataclass(frozen=True)
class Registry:
    """Fully cross-referenced registry, built once by build_registry.

    Cross links (enum to enumeration, bitmask to enum) are stored as names
    and resolved through the lookup methods below.
    """

    platforms: dict[str, Platform]
    enumerations: dict[str, Enumeration]
    types: TypeRegistry
    commands: dict[str, CommandDef]
    features: dict[str, Feature]
    extensions: dict[str, Extension]
    header_version: int | None = None

    def enumeration_for(self, enum_def: EnumDef) -> Enumeration | None:
        if enum_def.enumeration_name is None:
            return None
        return self.enumerations.get(enum_def.enumeration_name)

    def enum_for_bitmask(self, bitmask: BitmaskDef) -> EnumDef | None:
        if bitmask.requires is None:
            return None
        return self.types.enums.get(rename_flag_bits(bitmask.requires))


# ===--- Registry construction ---=== #


def _supports_api(api_value: str | None, api: str) -> bool:
    """Return True when a comma-separated api attribute lists api.

    A missing attribute means the record applies to every api.
    """
    if api_value is None:
        return True
    return any(token.strip() == api for token in api_value.split(","))


def _require_field(
    value: str | None, category: str, field: str, name: str | None = None
) -> str:
    if value is None:
        where = f"{category} {name}" if name else f"unnamed {category}"
        raise RegistryError(
            "MALFORMED_INPUT",
            f"Missing {field} on {where}",
            category=category,
            name=name,
        )
    return value


def _parse_int(value: str, category: str, field: str, name: str) -> int:
    try:
        return int(value)
    except ValueError as err:
        raise RegistryError(
            "MALFORMED_INPUT",
            f"Unparsable {field} {value!r} on {category} {name}",
            category=category,
            name=name,
        ) from err


def _insert_unique(
    partition: dict[str, object], category: str, name: str, value: object
) -> None:
    if name in partition:
        raise RegistryError(
            "DUPLICATE_KEY",
            f"Duplicate {category} name: {name}",
            category=category,
            name=name,
        )
    partition[name] = value


def _split_codes(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(code.strip() for code in raw.split(",") if code.strip())


def _unique_in_order(names: Iterable[str | None]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(n for n in names if n is not None))


def build_platforms(raw: RawRegistry) -> dict[str, Platform]:
    platforms: dict[str, Platform] = {}
    for p in raw.platforms:
        name = _require_field(p.name, "platform", "name")
        _insert_unique(platforms, "platform", name, Platform(name, p.comment))
    return platforms


def _enumeration_value(raw_value: RawEnumValue, category: str) -> EnumerationValue:
    name = _require_field(raw_value.name, category, "name")
    if raw_value.value is not None:
        return EnumerationValue(name=name, value=raw_value.value)
    if raw_value.bitpos is not None:
        bitpos = _parse_int(raw_value.bitpos, category, "bitpos", name)
        return EnumerationValue(name=name, value=f"1 << {bitpos}", bitpos=bitpos)
    if raw_value.alias is not None:
        return EnumerationValue(name=name, value=raw_value.alias, alias=raw_value.alias)
    return EnumerationValue(name=name, value=None)


def _extension_enum_value(
    raw_value: RawEnumValue, default_extnumber: str | None
) -> EnumerationValue | None:
    """Build the value contributed by an ``<enum extends=...>`` require entry.

    Offsets are placed in the extension's reserved block:
    ENUM_BASE_VALUE + (extnumber - 1) * ENUM_RANGE_SIZE + offset, negated
    for ``dir="-"``.
    """
    if raw_value.offset is None:
        if raw_value.value is None and raw_value.bitpos is None and raw_value.alias is None:
            return None
        return _enumeration_value(raw_value, "enum")

    name = _require_field(raw_value.name, "enum", "name")
    extnumber = raw_value.extnumber if raw_value.extnumber is not None else default_extnumber
    if extnumber is None:
        raise RegistryError(
            "MALFORMED_INPUT",
            f"Missing extnumber on enum {name}",
            category="enum",
            name=name,
        )
    number = (
        ENUM_BASE_VALUE
        + (_parse_int(extnumber, "enum", "extnumber", name) - 1) * ENUM_RANGE_SIZE
        + _parse_int(raw_value.offset, "enum", "offset", name)
    )
    if raw_value.direction == "-":
        number = -number
    return EnumerationValue(name=name, value=str(number))


def _extension_supported(ext: RawExtension, api: str) -> bool:
    """Return True unless ext is disabled or its supported list omits api."""
    return ext.supported != DISABLED_SUPPORT and _supports_api(ext.supported, api)


def _iter_require_blocks(
    raw: RawRegistry, api: str
) -> Iterable[tuple[RawRequire, str | None]]:
    """Yield each api-matching require block with its default extnumber."""
    for feat in raw.features:
        if not _supports_api(feat.api, api):
            continue
        for req in feat.requires:
            if _supports_api(req.api, api):
                yield req, None
    for ext in raw.extensions:
        if not _extension_supported(ext, api):
            continue
        for req in ext.requires:
            if _supports_api(req.api, api):
                yield req, ext.number


def build_enumerations(raw: RawRegistry, api: str = DEFAULT_API) -> dict[str, Enumeration]:
    """Build every ``<enums>`` block, then merge values added by require blocks.

    Require blocks are read from api-matching features and from extensions
    whose supported list names api. A value name is kept at its first
    occurrence within an enumeration; extension offsets are placed with
    _extension_enum_value.

    Args:
        raw: Parsed raw registry.
        api: API selector for features, extensions and individual values.

    Returns:
        Enumerations keyed by block name, in document order.

    Raises:
        RegistryError: MALFORMED_INPUT for an unnamed block or value or an
            unparsable bitwidth, bitpos, offset or extnumber; DUPLICATE_KEY
            for a repeated block name.
    """
    collected: dict[str, list[EnumerationValue]] = {}
    seen: dict[str, set[str]] = {}
    meta: dict[str, tuple[bool, int | None]] = {}

    for block in raw.enums:
        name = _require_field(block.name, "enumeration", "name")
        if name in collected:
            raise RegistryError(
                "DUPLICATE_KEY",
                f"Duplicate enumeration name: {name}",
                category="enumeration",
                name=name,
            )
        bit_width: int | None = None
        if block.bitwidth is not None:
            bit_width = _parse_int(block.bitwidth, "enumeration", "bitwidth", name)
        meta[name] = (block.type == "bitmask", bit_width)
        collected[name] = []
        seen[name] = set()
        for raw_value in block.values:
            if not _supports_api(raw_value.api, api):
                continue
            value = _enumeration_value(raw_value, "enum")
            if value.name not in seen[name]:
                collected[name].append(value)
                seen[name].add(value.name)

    for req, default_extnumber in _iter_require_blocks(raw, api):
        for raw_value in req.enums:
            target = raw_value.extends
            if target is None or target not in collected:
                continue
            if not _supports_api(raw_value.api, api):
                continue
            value = _extension_enum_value(raw_value, default_extnumber)
            if value is None or value.name in seen[target]:
                continue
            collected[target].append(value)
            seen[target].add(value.name)

    return {
        name: Enumeration(
            name=name,
            values=tuple(values),
            is_bitmask=meta[name][0],
            bit_width=meta[name][1],
        )
        for name, values in collected.items()
    }


API_CONSTANTS_BLOCK = "API Constants"


def load_api_constants(raw: RawRegistry) -> dict[str, int]:
    """Return the array-size table for raw.

    Integer entries of the document's API Constants block (and aliases of
    them) are layered over ARRAY_SIZE_CONSTANTS, so sizes introduced by a
    newer registry resolve without a table update. Non-integer constants
    such as ``(~0U)`` or ``1000.0F`` are not array sizes and are ignored.
    """
    constants = dict(ARRAY_SIZE_CONSTANTS)
    for block in raw.enums:
        if block.name != API_CONSTANTS_BLOCK:
            continue
        for val in block.values:
            if val.name is None:
                continue
            if val.value is not None and val.value.isdigit():
                constants[val.name] = int(val.value)
            elif val.alias is not None and val.alias in constants:
                constants[val.name] = constants[val.alias]
    return constants


def build_struct_member(
    member: RawTypeMember,
    struct_name: str,
    constants: dict[str, int] | None = None,
) -> StructMember:
    name = _require_field(member.name, "member", "name", struct_name)
    type_name = _require_field(member.type, "member", "type", f"{struct_name}.{name}")
    tokens = member.type_modifiers
    is_array = is_inline_array(tokens)
    if not is_array:
        length = 0
    elif member.array_size is not None:
        length = array_length(tokens, member.array_size, constants)
    else:
        length = array_length(tokens)
    return StructMember(
        name=format_field_name(name),
        type_name=format_type_name(type_name),
        pointer_depth=pointer_depth(tokens),
        is_const=is_const(tokens),
        is_array=is_array,
        array_length=length,
        value=member.values,
    )


def _storage_for_bit_width(enumeration: Enumeration) -> str:
    if enumeration.bit_width not in BITMASK_STORAGE_BY_WIDTH:
        raise RegistryError(
            "UNRESOLVED_REFERENCE",
            f"Unrecognized bit width {enumeration.bit_width} on enumeration "
            f"{enumeration.name}",
            category="enumeration",
            name=enumeration.name,
        )
    return BITMASK_STORAGE_BY_WIDTH[enumeration.bit_width]


def build_enum(
    t: RawType,
    enumerations: dict[str, Enumeration],
    bitmasks: dict[str, BitmaskDef],
) -> EnumDef:
    """Resolve an enum type's linked enumeration and storage type.

    Storage is taken from the enum's own declared type, then from a bitmask
    whose requires names this enum (or its alias target), which also marks
    the enum as a bitmask, then from the enumeration's bit width.
    """
    declared = _require_field(t.name, "enum", "name")
    link = t.alias if t.alias is not None else declared
    enumeration = enumerations.get(link)

    type_name = format_type_name(t.type) if t.type is not None else None
    is_bitmask = False
    for bitmask in bitmasks.values():
        if bitmask.requires == link:
            type_name = bitmask.type_name
            is_bitmask = True
            break

    if type_name is None and enumeration is not None:
        if enumeration.is_bitmask and enumeration.bit_width is not None:
            type_name = _storage_for_bit_width(enumeration)

    return EnumDef(
        name=rename_flag_bits(declared),
        declared_name=declared,
        type_name=type_name,
        is_bitmask=is_bitmask,
        enumeration_name=enumeration.name if enumeration is not None else None,
        alias=t.alias,
    )


def build_types(
    raw: RawRegistry,
    enumerations: dict[str, Enumeration],
    api: str = DEFAULT_API,
    constants: dict[str, int] | None = None,
) -> TypeRegistry:
    """Partition type declarations by category, in document order.

    Categories outside TypeCategory (defines, includes, unions, function
    pointers) are skipped. Base types without an underlying type are
    placeholders and are skipped too.

    Args:
        raw: Parsed raw registry.
        enumerations: Output of build_enumerations, consulted for enum
            storage resolution.
        api: API selector; types and members for other apis are skipped.
        constants: Array-size table; defaults to load_api_constants(raw).

    Returns:
        TypeRegistry with one name-keyed partition per TypeCategory.

    Raises:
        RegistryError: MALFORMED_INPUT for an unnamed type or member,
            UNRESOLVED_REFERENCE for an unknown array size or bit width,
            DUPLICATE_KEY for a name repeated within a category.
    """
    if constants is None:
        constants = load_api_constants(raw)
    base_types: dict[str, BaseTypeDef] = {}
    bitmasks: dict[str, BitmaskDef] = {}
    handles: dict[str, HandleDef] = {}
    enums: dict[str, EnumDef] = {}
    structs: dict[str, StructDef] = {}

    for t in raw.types:
        if t.category is None or not _supports_api(t.api, api):
            continue
        if t.category == TypeCategory.BITMASK.value:
            name = _require_field(t.name, "bitmask", "name")
            bitmask = BitmaskDef(
                name=name,
                type_name=format_type_name(t.type) if t.type is not None else None,
                requires=t.requires if t.requires is not None else t.bitvalues,
                alias=t.alias,
            )
            _insert_unique(bitmasks, "bitmask", name, bitmask)
        elif t.category == TypeCategory.HANDLE.value:
            name = _require_field(t.name, "handle", "name")
            _insert_unique(
                handles, "handle", name, HandleDef(name, parent=t.parent, alias=t.alias)
            )
        elif t.category == TypeCategory.ENUM.value:
            enum_def = build_enum(t, enumerations, bitmasks)
            _insert_unique(enums, "enum", enum_def.name, enum_def)
        elif t.category == TypeCategory.STRUCT.value:
            name = _require_field(t.name, "struct", "name")
            members = tuple(
                build_struct_member(m, name, constants)
                for m in t.members
                if _supports_api(m.api, api)
            )
            _insert_unique(
                structs, "struct", name, StructDef(name, members=members, alias=t.alias)
            )
        elif t.category == TypeCategory.BASE_TYPE.value:
            if t.type is None:
                continue
            name = _require_field(t.name, "basetype", "name")
            _insert_unique(
                base_types,
                "basetype",
                name,
                BaseTypeDef(name, type_name=format_type_name(t.type), alias=t.alias),
            )

    return TypeRegistry(
        base_types=base_types,
        bitmasks=bitmasks,
        handles=handles,
        enums=enums,
        structs=structs,
    )


def build_command_param(p: RawCommandParam, command_name: str) -> CommandParam:
    name = _require_field(p.name, "param", "name", command_name)
    type_name = _require_field(p.type, "param", "type", f"{command_name}.{name}")
    return CommandParam(
        name=format_field_name(name),
        type_name=format_type_name(type_name),
        pointer_depth=pointer_depth(p.type_modifiers),
        is_const=is_const(p.type_modifiers),
        optionality=parse_optionality(p.optional),
        is_array=p.length is not None,
    )


def build_command(c: RawCommand, api: str = DEFAULT_API) -> CommandDef:
    name = _require_field(c.name, "command", "name")
    if c.alias is not None:
        return CommandDef(name=name, return_type=None, parameters=(), alias=c.alias)
    return_type = _require_field(c.return_type, "command", "return type", name)
    return CommandDef(
        name=name,
        return_type=format_type_name(return_type),
        parameters=tuple(
            build_command_param(p, name) for p in c.params if _supports_api(p.api, api)
        ),
        success_codes=_split_codes(c.success_codes),
        error_codes=_split_codes(c.error_codes),
    )


def build_commands(raw: RawRegistry, api: str = DEFAULT_API) -> dict[str, CommandDef]:
    """Build the addressable command collection. Alias commands are dropped."""
    commands: dict[str, CommandDef] = {}
    for c in raw.commands:
        if not _supports_api(c.api, api):
            continue
        command = build_command(c, api)
        if command.is_alias:
            continue
        _insert_unique(commands, "command", command.name, command)
    return commands


def _flatten_requires(
    requires: Iterable[RawRequire], api: str
) -> tuple[tuple[str, ...], tuple[str, ...]]:
    blocks = [r for r in requires if _supports_api(r.api, api)]
    types = _unique_in_order(name for r in blocks for name in r.types)
    commands = _unique_in_order(name for r in blocks for name in r.commands)
    return types, commands


def build_features(raw: RawRegistry, api: str = DEFAULT_API) -> dict[str, Feature]:
    features: dict[str, Feature] = {}
    for f in raw.features:
        if not _supports_api(f.api, api):
            continue
        name = _require_field(f.name, "feature", "name")
        types, commands = _flatten_requires(f.requires, api)
        _insert_unique(
            features,
            "feature",
            name,
            Feature(
                name=name,
                api=f.api,
                number=f.number,
                required_types=types,
                required_commands=commands,
            ),
        )
    return features


def build_extensions(raw: RawRegistry, api: str = DEFAULT_API) -> dict[str, Extension]:
    """Build every extension whose ``supported`` list names api.

    Extensions marked ``supported="disabled"`` and those supported only by
    other apis (e.g. ``vulkansc``) are left out, so selection by author can
    never pull in their types or commands.

    Args:
        raw: Parsed raw registry.
        api: API selector matched against each extension's supported list.

    Returns:
        Extensions keyed by name, in document order.

    Raises:
        RegistryError: MALFORMED_INPUT for a missing name or author or an
            unparsable number; DUPLICATE_KEY for a repeated name.
    """
    extensions: dict[str, Extension] = {}
    for e in raw.extensions:
        if not _extension_supported(e, api):
            continue
        name = _require_field(e.name, "extension", "name")
        author = _require_field(e.author, "extension", "author", name)
        types, commands = _flatten_requires(e.requires, api)
        _insert_unique(
            extensions,
            "extension",
            name,
            Extension(
                name=name,
                number=(
                    _parse_int(e.number, "extension", "number", name)
                    if e.number is not None
                    else None
                ),
                author=author,
                ext_type=e.type,
                platform=e.platform,
                supported=e.supported,
                required_types=types,
                required_commands=commands,
            ),
        )
    return extensions


def find_header_version(raw: RawRegistry, api: str = DEFAULT_API) -> int | None:
    """Return the VK_HEADER_VERSION define's value, if the registry has one."""
    for t in raw.types:
        if t.category != "define" or t.name != "VK_HEADER_VERSION":
            continue
        if not _supports_api(t.api, api):
            continue
        for fragment in reversed(t.text):
            if fragment.isdigit():
                return int(fragment)
    return None


def build_registry(raw: RawRegistry, api: str = DEFAULT_API) -> Registry:
    """Build the cross-referenced Registry from the raw record model.

    Enumerations are built before types because enum storage resolution
    consults them. Construction is all-or-nothing: the first fatal problem
    raises and no partial registry is returned.

    Args:
        raw: Parsed raw registry from parse_raw_registry/load_raw_registry.
        api: API selector; records whose api attribute excludes it are skipped.

    Returns:
        Registry with every partition populated.

    Raises:
        RegistryError: MALFORMED_INPUT, UNRESOLVED_REFERENCE or DUPLICATE_KEY.
    """
    platforms = build_platforms(raw)
    enumerations = build_enumerations(raw, api)
    types = build_types(raw, enumerations, api)
    commands = build_commands(raw, api)
    features = build_features(raw, api)
    extensions = build_extensions(raw, api)
    return Registry(
        platforms=platforms,
        enumerations=enumerations,
        types=types,
        commands=commands,
        features=features,
        extensions=extensions,
        header_version=find_header_version(raw, api),
    )


# ===--- Selection ---=== #


@dataclass(frozen=True)
class SelectionConfig:
    """Allow-lists driving select_enabled. Supplied by the caller per run."""

    features: frozenset[str]
    authors: frozenset[str]
    platforms: frozenset[str]


@dataclass(frozen=True)
class Selection:
    features: tuple[Feature, ...]
    extensions: tuple[Extension, ...]
    type_names: frozenset[str]
    command_names: frozenset[str]


def select_features(registry: Registry, names: frozenset[str]) -> tuple[Feature, ...]:
    return tuple(f for f in registry.features.values() if f.name in names)


def select_extensions(
    registry: Registry, authors: frozenset[str], platforms: frozenset[str]
) -> tuple[Extension, ...]:
    """Return the registry extensions enabled by the author and platform lists.

    Args:
        registry: Registry whose extensions already match its api.
        authors: Author tags to enable, e.g. {"KHR", "EXT"}.
        platforms: Platform names to enable. Platform-independent
            extensions need no entry here.

    Returns:
        Matching extensions in document order.
    """
    return tuple(
        e
        for e in registry.extensions.values()
        if e.author in authors and (e.platform is None or e.platform in platforms)
    )


def select_enabled(registry: Registry, config: SelectionConfig) -> Selection:
    """Compute the enabled features, extensions and required names.

    Type and command names are the union of the required names of every
    enabled feature and extension. The result depends only on the registry
    and the allow-lists.
    """
    features = select_features(registry, config.features)
    extensions = select_extensions(registry, config.authors, config.platforms)
    sources: tuple[Feature | Extension, ...] = features + extensions
    return Selection(
        features=features,
        extensions=extensions,
        type_names=frozenset(name for s in sources for name in s.required_types),
        command_names=frozenset(name for s in sources for name in s.required_commands),
    )


# ===--- Registry metadata ---=== #


def registry_version(registry: Registry, api: str = DEFAULT_API) -> str:
    """Return the registry version string, e.g. "1.4.343".

    Major.minor is the highest feature number for api; the patch is the
    VK_HEADER_VERSION define. Returns "<major>.<minor>" without a header
    version and "unknown" when no feature carries a number.
    """
    best: tuple[int, int] | None = None
    for feat in registry.features.values():
        if not _supports_api(feat.api, api) or not feat.number:
            continue
        major_s, _, minor_s = feat.number.partition(".")
        try:
            version = (int(major_s), int(minor_s or "0"))
        except ValueError:
            continue
        if best is None or version > best:
            best = version

    if best is None:
        return "unknown"
    if registry.header_version is None:
        return f"{best[0]}.{best[1]}"
    return f"{best[0]}.{best[1]}.{registry.header_version}"


# ===--- C# emission ---=== #

HANDLES_FILE_NAME = "VulkanHandles.g.cs"
STRUCTS_FILE_NAME = "VulkanStructs.g.cs"
ENUMS_FILE_NAME = "VulkanEnums.g.cs"
COMMANDS_FILE_NAME = "VulkanCommands.g.cs"

MODULE_ORDER: tuple[str, ...] = (
    HANDLES_FILE_NAME,
    STRUCTS_FILE_NAME,
    ENUMS_FILE_NAME,
    COMMANDS_FILE_NAME,
)

HANDLES_USINGS: tuple[str, ...] = ("System.Runtime.InteropServices",)
STRUCTS_USINGS: tuple[str, ...] = ("System.Runtime.InteropServices",)
ENUMS_USINGS: tuple[str, ...] = ("System",)
COMMANDS_USINGS: tuple[str, ...] = ("System.Security", "System.Runtime.InteropServices")

# Element types C# accepts in a fixed-size buffer.
FIXED_BUFFER_TYPES = frozenset(
    {
        "bool",
        "byte",
        "sbyte",
        "short",
        "ushort",
        "int",
        "uint",
        "long",
        "ulong",
        "char",
        "float",
        "double",
    }
)

INDENT = "    "


def csharp_type(type_name: str, depth: int) -> str:
    return type_name + "*" * depth


def generate_handles(registry: Registry, selection: Selection) -> list[str]:
    lines: list[str] = []
    for handle in registry.types.handles.values():
        if handle.alias is not None or handle.name not in selection.type_names:
            continue
        lines.append("[StructLayout(LayoutKind.Sequential)]")
        lines.append(f"public unsafe struct {handle.name}")
        lines.append("{")
        lines.append(f"{INDENT}private void* _handle;")
        lines.append("")
        lines.append(f"{INDENT}public static readonly {handle.name} Null = new();")
        lines.append("}")
        lines.append("")
    return lines


def generate_struct_member(member: StructMember) -> list[str]:
    type_name = csharp_type(member.type_name, member.pointer_depth)
    if not member.is_array:
        return [f"{INDENT}public {type_name} {member.name};"]
    if member.pointer_depth == 0 and member.type_name in FIXED_BUFFER_TYPES:
        return [f"{INDENT}public fixed {type_name} {member.name}[{member.array_length}];"]
    # Fixed buffers only take primitives; unroll the rest element by element.
    return [
        f"{INDENT}public {type_name} {member.name}_{i};"
        for i in range(member.array_length)
    ]


def generate_structs(registry: Registry, selection: Selection) -> list[str]:
    lines: list[str] = []
    for struct in registry.types.structs.values():
        if struct.alias is not None or struct.name not in selection.type_names:
            continue
        lines.append("[StructLayout(LayoutKind.Sequential)]")
        lines.append(f"public unsafe struct {struct.name}")
        lines.append("{")
        for member in struct.members:
            lines.extend(generate_struct_member(member))
        lines.append("}")
        lines.append("")
    return lines


def format_enumeration_value(value: EnumerationValue, storage: str | None) -> str | None:
    if value.bitpos is not None:
        if storage == "ulong":
            return f"1UL << {value.bitpos}"
        if storage == "uint":
            return f"1U << {value.bitpos}"
        return f"1 << {value.bitpos}"
    return value.value


def _enum_header(name: str, storage: str | None) -> str:
    if storage is None:
        return f"public enum {name}"
    return f"public enum {name} : {storage}"


def generate_enums(registry: Registry) -> list[str]:
    """Render every bitmask and enum in the registry.

    A bitmask with no enum of the same name becomes an empty [Flags] enum so
    struct members typed with it still resolve. Enums are emitted whether or
    not they are selected, since any enabled struct may use them.
    """
    lines: list[str] = []
    enums = registry.types.enums

    for bitmask in registry.types.bitmasks.values():
        if bitmask.alias is not None or bitmask.name in enums:
            continue
        lines.append("[Flags]")
        lines.append(_enum_header(bitmask.name, bitmask.type_name))
        lines.append("{")
        lines.append("}")
        lines.append("")

    lines.append("// Enums")
    lines.append("")

    for enum_def in enums.values():
        if enum_def.is_bitmask:
            lines.append("[Flags]")
        lines.append(_enum_header(enum_def.name, enum_def.type_name))
        lines.append("{")
        enumeration = registry.enumeration_for(enum_def)
        if enumeration is not None:
            for value in enumeration.values:
                rendered = format_enumeration_value(value, enum_def.type_name)
                if rendered is None:
                    lines.append(f"{INDENT}{value.name},")
                else:
                    lines.append(f"{INDENT}{value.name} = {rendered},")
        lines.append("}")
        lines.append("")

    return lines


def format_command_param(param: CommandParam) -> str:
    prefix = f"{param.qualifier} " if param.qualifier is not None else ""
    type_name = csharp_type(param.type_name, param.signature_pointer_depth)
    return f"{prefix}{type_name} {param.name}"


def generate_command_delegate(command: CommandDef) -> list[str]:
    params = ", ".join(format_command_param(p) for p in command.parameters)
    return [
        "[SuppressUnmanagedCodeSecurity]",
        "[UnmanagedFunctionPointer(CallingConvention.Winapi)]",
        f"public unsafe delegate {command.return_type} PFN_{command.name}({params});",
        "",
    ]


def generate_commands(registry: Registry, selection: Selection) -> list[str]:
    commands = [
        c for c in registry.commands.values() if c.name in selection.command_names
    ]
    lines: list[str] = []
    for command in commands:
        lines.extend(generate_command_delegate(command))

    lines.append("public static class ProcedureName")
    lines.append("{")
    for command in commands:
        const_name = command.name.removeprefix("vk")
        lines.append(f'{INDENT}public const string {const_name} = "{command.name}";')
    lines.append("}")
    return lines


# ===--- Package writer ---=== #


@dataclass(frozen=True)
class WriteConfig:
    """Shared generation metadata embedded in every file header.

    Attributes:
        registry_version: Registry version string, e.g. "1.4.343".
        namespace: C# namespace every generated file declares.
        features: Enabled feature names.
        authors: Enabled extension authors.
        platforms: Enabled platform names.
    """

    registry_version: str
    namespace: str
    features: frozenset[str]
    authors: frozenset[str]
    platforms: frozenset[str]


@dataclass(frozen=True)
class ModuleSpec:
    """Complete input for one generated .g.cs file.

    Attributes:
        filename: Output filename, e.g. "VulkanStructs.g.cs".
        usings: Namespaces imported with ``using``, in declaration order.
        content_lines: Body lines below the namespace declaration, each
            without a trailing newline.
    """

    filename: str
    usings: tuple[str, ...]
    content_lines: tuple[str, ...]


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing a single generated file.

    Attributes:
        filename: Filename written, e.g. "VulkanEnums.g.cs".
        path: Absolute path of the written file.
        line_count: Number of newline characters in the written content.
        byte_count: Number of bytes written (UTF-8 encoded).
    """

    filename: str
    path: Path
    line_count: int
    byte_count: int


@dataclass(frozen=True)
class PackageWriteResult:
    output_dir: Path
    files: tuple[FileWriteResult, ...]

    @property
    def total_lines(self) -> int:
        """Sum of line_count across all written files."""
        return sum(f.line_count for f in self.files)


_HEADER_BORDER: str = "// x-------------------------------------------x //"


def format_file_header(config: WriteConfig) -> list[str]:
    """Return the boxed comment lines at the top of every generated file.

    Output format:
        // x-------------------------------------------x //
        // | Vulkan bindings for C#
        // | Generated by vkcsgen
        // | Source: vk.xml 1.4.343
        // | Features: VK_VERSION_1_0
        // | Authors: EXT, KHR
        // | Platforms: win32
        // x-------------------------------------------x //

    Name lists are sorted; a list line is omitted when its set is empty.

    Raises:
        ValueError: If config.registry_version is empty.
    """
    if not config.registry_version:
        raise ValueError("registry_version must not be empty")

    lines: list[str] = [
        _HEADER_BORDER,
        "// | Vulkan bindings for C#",
        "// | Generated by vkcsgen",
        f"// | Source: vk.xml {config.registry_version}",
    ]
    for label, names in (
        ("Features", config.features),
        ("Authors", config.authors),
        ("Platforms", config.platforms),
    ):
        if names:
            lines.append(f"// | {label}: {', '.join(sorted(names))}")
    lines.append(_HEADER_BORDER)
    return lines


def assemble_module_source(config: WriteConfig, spec: ModuleSpec) -> str:
    """Assemble a complete C# source string from a ModuleSpec.

    File structure:
        <header comment block>
                                    <- blank line
        using <ns>;                 <- one per spec.usings, omitted when empty
                                    <- blank line
        namespace <config.namespace>;
                                    <- blank line
        <content_lines>             <- omitted when empty
                                    <- trailing newline

    Raises:
        ValueError: If spec.filename is empty or does not end with ".g.cs".
    """
    if not spec.filename or not spec.filename.endswith(".g.cs"):
        raise ValueError(
            f"spec.filename must be non-empty and end with '.g.cs', "
            f"got {spec.filename!r}"
        )

    parts: list[str] = list(format_file_header(config))
    parts.append("")
    if spec.usings:
        parts.extend(f"using {ns};" for ns in spec.usings)
        parts.append("")
    parts.append(f"namespace {config.namespace};")

    if spec.content_lines:
        parts.append("")
        parts.extend(spec.content_lines)

    return "\n".join(parts).rstrip("\n") + "\n"


def write_module(
    output_dir: Path, config: WriteConfig, spec: ModuleSpec
) -> FileWriteResult:
    """Write a single generated module file, creating output_dir if needed.

    Raises:
        ValueError: Propagated from assemble_module_source on invalid spec.
        OSError: Propagated directly if the filesystem write fails.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    content = assemble_module_source(config, spec)
    file_path = output_dir / spec.filename
    data = content.encode("utf-8")
    file_path.write_bytes(data)
    return FileWriteResult(
        filename=spec.filename,
        path=file_path.resolve(),
        line_count=content.count("\n"),
        byte_count=len(data),
    )


def write_package(
    output_dir: Path,
    config: WriteConfig,
    module_specs: tuple[ModuleSpec, ...],
) -> PackageWriteResult:
    """Write every module spec in order. No rollback on partial failure."""
    files = tuple(write_module(output_dir, config, spec) for spec in module_specs)
    return PackageWriteResult(output_dir=Path(output_dir), files=files)


# ===--- Pipeline ---=== #


def build_selection_config(config: GenerateConfig) -> SelectionConfig:
    return SelectionConfig(
        features=config.features,
        authors=config.authors,
        platforms=config.platforms,
    )


def build_write_config(config: GenerateConfig, version: str) -> WriteConfig:
    return WriteConfig(
        registry_version=version,
        namespace=config.namespace,
        features=config.features,
        authors=config.authors,
        platforms=config.platforms,
    )


def build_module_specs(registry: Registry, selection: Selection) -> tuple[ModuleSpec, ...]:
    """Render the four output modules, in MODULE_ORDER."""
    return (
        ModuleSpec(
            filename=HANDLES_FILE_NAME,
            usings=HANDLES_USINGS,
            content_lines=tuple(generate_handles(registry, selection)),
        ),
        ModuleSpec(
            filename=STRUCTS_FILE_NAME,
            usings=STRUCTS_USINGS,
            content_lines=tuple(generate_structs(registry, selection)),
        ),
        ModuleSpec(
            filename=ENUMS_FILE_NAME,
            usings=ENUMS_USINGS,
            content_lines=tuple(generate_enums(registry)),
        ),
        ModuleSpec(
            filename=COMMANDS_FILE_NAME,
            usings=COMMANDS_USINGS,
            content_lines=tuple(generate_commands(registry, selection)),
        ),
    )


def run_generate(config: GenerateConfig) -> PackageWriteResult:
    """Execute the complete generation pipeline for a GenerateConfig.

    Stages: load raw registry -> build registry -> select -> render -> write
    -> summary report.

    Args:
        config: Validated GenerateConfig from build_config.

    Returns:
        PackageWriteResult describing every file written.

    Raises:
        OSError: vk.xml not readable or filesystem write failure.
        ET.ParseError: Malformed vk.xml.
        RegistryError: The registry cannot be built consistently.
    """
    print(f"Parsing: {config.vk_xml}")
    raw = load_raw_registry(config.vk_xml)

    registry = build_registry(raw, config.api)
    print(
        f"  Registry: {len(registry.types)} types, {len(registry.commands)} commands, "
        f"{len(registry.features)} features, {len(registry.extensions)} extensions"
    )

    selection = select_enabled(registry, build_selection_config(config))
    print(
        f"  Selection: {len(selection.features)} features, "
        f"{len(selection.extensions)} extensions, {len(selection.type_names)} types, "
        f"{len(selection.command_names)} commands"
    )

    write_config = build_write_config(config, registry_version(registry, config.api))
    module_specs = build_module_specs(registry, selection)
    result = write_package(config.output_dir, write_config, module_specs)
    print(
        f"  Written: {len(result.files)} files, "
        f"{result.total_lines} lines to {result.output_dir}"
    )

    summary = build_generation_summary(write_config, registry, selection, result)
    print_generation_summary(summary)

    return result


# ===--- Summary report ---=== #


@dataclass(frozen=True)
class CategoryCount:
    """Count of items in one category, split by core vs. extension.

    An item is core when an enabled feature requires it; everything else
    came in through an enabled extension. Invariant: core + ext == total.
    """

    total: int
    core: int
    ext: int


@dataclass(frozen=True)
class GenerationCounts:
    handles: CategoryCount
    structs: CategoryCount
    enums: CategoryCount
    commands: CategoryCount


@dataclass(frozen=True)
class GenerationSummary:
    target_label: str
    source_label: str
    output_dir: str
    counts: GenerationCounts
    files: tuple[FileWriteResult, ...]


def build_target_label(config: WriteConfig) -> str:
    features = ", ".join(sorted(config.features)) or "no features"
    authors = ", ".join(sorted(config.authors))
    if not authors:
        return features
    return f"{features} + {authors} extensions"


def build_generation_counts(registry: Registry, selection: Selection) -> GenerationCounts:
    core_types = frozenset(n for f in selection.features for n in f.required_types)
    core_commands = frozenset(
        n for f in selection.features for n in f.required_commands
    )

    def _count(names: list[str], core_set: frozenset[str]) -> CategoryCount:
        total = len(names)
        core = sum(1 for n in names if n in core_set)
        return CategoryCount(total=total, core=core, ext=total - core)

    handle_names = [
        h.name
        for h in registry.types.handles.values()
        if h.alias is None and h.name in selection.type_names
    ]
    struct_names = [
        s.name
        for s in registry.types.structs.values()
        if s.alias is None and s.name in selection.type_names
    ]
    enum_names = [
        e.declared_name
        for e in registry.types.enums.values()
        if e.declared_name in selection.type_names
    ]
    command_names = [
        c.name for c in registry.commands.values() if c.name in selection.command_names
    ]

    return GenerationCounts(
        handles=_count(handle_names, core_types),
        structs=_count(struct_names, core_types),
        enums=_count(enum_names, core_types),
        commands=_count(command_names, core_commands),
    )


def build_generation_summary(
    write_config: WriteConfig,
    registry: Registry,
    selection: Selection,
    write_result: PackageWriteResult,
) -> GenerationSummary:
    return GenerationSummary(
        target_label=build_target_label(write_config),
        source_label=f"vk.xml {write_config.registry_version}",
        output_dir=str(write_result.output_dir),
        counts=build_generation_counts(registry, selection),
        files=write_result.files,
    )


def format_generation_summary(summary: GenerationSummary) -> str:
    """Render a GenerationSummary to the multi-section console string.

    Split annotations appear only when ext > 0. Line counts use thousands
    separators. Returns a string with exactly one trailing newline.
    """
    lines: list[str] = []
    lines.append("C# bindings generated:")
    lines.append("")
    lines.append(f"  Target:     {summary.target_label}")
    lines.append(f"  Source:     {summary.source_label}")
    lines.append(f"  Output:     {summary.output_dir}")
    lines.append("")
    lines.append("  Types generated:")

    def _type_row(label: str, cc: CategoryCount) -> str:
        count_str = f"{cc.total:>6}"
        if cc.ext > 0:
            return f"    {label:<11}{count_str}  ({cc.core} core + {cc.ext} from extensions)"
        return f"    {label:<11}{count_str}"

    lines.append(_type_row("Handles:", summary.counts.handles))
    lines.append(_type_row("Structs:", summary.counts.structs))
    lines.append(_type_row("Enums:", summary.counts.enums))
    lines.append(_type_row("Commands:", summary.counts.commands))

    lines.append("")
    lines.append("  Files written:")
    for file_result in summary.files:
        line_str = f"{file_result.line_count:>6,} lines"
        lines.append(f"    {file_result.filename:<28} {line_str}")

    total_lines = sum(f.line_count for f in summary.files)
    lines.append("")
    lines.append(f"  Total: {total_lines:,} lines across {len(summary.files)} files")
    lines.append("")

    return "\n".join(lines)


def print_generation_summary(summary: GenerationSummary) -> None:
    print(format_generation_summary(summary), end="")


# ===--- Discovery commands ---=== #


@dataclass(frozen=True)
class FeatureSummary:
    """One row of the --list-features table."""

    name: str
    api: str
    number: str
    type_count: int
    command_count: int


@dataclass(frozen=True)
class ExtensionSummary:
    """One row of the --list-extensions table.

    Attributes:
        name: Extension name, e.g. "VK_KHR_swapchain".
        author: Author tag, e.g. "KHR".
        ext_type: "device", "instance", or "" if unspecified.
        platform: Platform name, or "" for platform-independent extensions.
        type_count: Distinct type names across the require blocks.
        command_count: Distinct command names across the require blocks.
    """

    name: str
    author: str
    ext_type: str
    platform: str
    type_count: int
    command_count: int


def gather_feature_summaries(registry: Registry) -> list[FeatureSummary]:
    """Return one FeatureSummary per feature, in document order."""
    return [
        FeatureSummary(
            name=f.name,
            api=f.api or "",
            number=f.number or "",
            type_count=len(f.required_types),
            command_count=len(f.required_commands),
        )
        for f in registry.features.values()
    ]


def gather_extension_summaries(registry: Registry) -> list[ExtensionSummary]:
    """Return one ExtensionSummary per registry extension, sorted by name."""
    summaries = [
        ExtensionSummary(
            name=e.name,
            author=e.author,
            ext_type=e.ext_type or "",
            platform=e.platform or "",
            type_count=len(e.required_types),
            command_count=len(e.required_commands),
        )
        for e in registry.extensions.values()
    ]
    summaries.sort(key=lambda s: s.name)
    return summaries


def filter_extensions_by_text(
    summaries: list[ExtensionSummary],
    filter_text: str,
) -> list[ExtensionSummary]:
    """Return summaries whose name contains filter_text, case-insensitively.

    An empty filter_text matches everything. Input order is preserved.
    """
    needle = filter_text.lower()
    return [s for s in summaries if needle in s.name.lower()]


def format_features_table(summaries: list[FeatureSummary], version: str) -> str:
    """Return the complete --list-features output.

    Output format:

        Features in vk.xml 1.4.343:

          VK_VERSION_1_0  vulkan  1.0   538 types  215 commands
          ...
    """
    lines = [f"Features in vk.xml {version}:", ""]
    name_width = max((len(s.name) for s in summaries), default=0)
    api_width = max((len(s.api) for s in summaries), default=0)
    for s in summaries:
        type_col = f"{s.type_count} types"
        cmd_col = f"{s.command_count} commands"
        row = (
            f"  {s.name.ljust(name_width)}  {s.api.ljust(api_width)}  "
            f"{s.number:<5} {type_col:<11} {cmd_col}"
        )
        lines.append(row.rstrip())
    lines.append("")
    return "\n".join(lines)


def format_extensions_table(summaries: list[ExtensionSummary], version: str) -> str:
    """Return the complete --list-extensions output.

    Output format:

        {N} extensions in vk.xml {version}:

          VK_KHR_swapchain      KHR  device    13 types  9 cmds
          VK_KHR_win32_surface  KHR  instance  2 types   2 cmds   platform: win32

    Column widths come from the widest value. Callers filter beforehand.
    """
    lines = [f"{len(summaries)} extensions in vk.xml {version}:", ""]

    if not summaries:
        lines.append("")
        return "\n".join(lines)

    name_width = max(len(s.name) for s in summaries)
    author_width = max(len(s.author) for s in summaries)
    type_width = max(len(s.ext_type) for s in summaries)

    for s in summaries:
        type_count_col = f"{s.type_count} types"
        cmd_count_col = f"{s.command_count} cmds"
        row = (
            f"  {s.name.ljust(name_width)}  {s.author.ljust(author_width)}  "
            f"{s.ext_type.ljust(type_width)}  {type_count_col:<10} {cmd_count_col:<8}"
        )
        if s.platform:
            row = row.rstrip() + f"  platform: {s.platform}"
        lines.append(row.rstrip())

    lines.append("")
    return "\n".join(lines)


def run_discovery(config: DiscoveryConfig) -> None:
    """Execute the discovery command named by config and print to stdout.

    dispatch table:
      "list-features"   -> gather_feature_summaries -> format_features_table
      "list-extensions" -> gather_extension_summaries -> [filter] -> format_extensions_table

    Raises:
        OSError: vk.xml not readable.
        ET.ParseError: Malformed vk.xml.
        RegistryError: The registry cannot be built consistently.
    """
    registry = build_registry(load_raw_registry(config.vk_xml), config.api)
    version = registry_version(registry, config.api)

    if config.command == "list-features":
        output = format_features_table(gather_feature_summaries(registry), version)
    else:
        summaries = gather_extension_summaries(registry)
        if config.filter_text is not None:
            summaries = filter_extensions_by_text(summaries, config.filter_text)
        output = format_extensions_table(summaries, version)
    print(output, end="")


# ===--- Main generation ---=== #


def main(argv: list[str] | None = None):
    try:
        config = build_config(argv)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}", file=sys.stderr)
        if err.suggestion:
            print(f"Hint: {err.suggestion}", file=sys.stderr)
        raise SystemExit(1) from err

    try:
        if isinstance(config, DiscoveryConfig):
            run_discovery(config)
        else:
            run_generate(config)
    except RegistryError as err:
        print(f"Registry error [{err.code}]: {err.message}", file=sys.stderr)
        raise SystemExit(1) from err
    except (OSError, ET.ParseError) as err:
        print(f"Error: {err}", file=sys.stderr)
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
