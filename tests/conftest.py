import argparse
import sys
import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import vkcsgen  # noqa: E402

SAMPLE_VK_XML = """<?xml version="1.0" encoding="UTF-8"?>
<registry>
  <platforms comment="Vulkan platform names">
    <platform name="win32" protect="VK_USE_PLATFORM_WIN32_KHR" comment="Microsoft Win32 API"/>
    <platform name="xlib" protect="VK_USE_PLATFORM_XLIB_KHR" comment="X Window System, Xlib client library"/>
  </platforms>
  <tags>
    <tag name="KHR" author="Khronos" contact="Tom Olson @tomolson"/>
    <tag name="EXT" author="Multivendor" contact="Jon Leech @oddhack"/>
    <tag name="NV" author="NVIDIA Corporation" contact="Daniel Koch @dgkoch"/>
  </tags>
  <types>
    <type api="vulkan" category="define">// Version of this file
#define <name>VK_HEADER_VERSION</name> 343</type>
    <type category="basetype">typedef <type>uint32_t</type> <name>VkBool32</name>;</type>
    <type category="basetype">typedef <type>uint64_t</type> <name>VkDeviceSize</name>;</type>
    <type category="basetype">struct <name>ANativeWindow</name>;</type>
    <type requires="VkInstanceCreateFlagBits" category="bitmask">typedef <type>VkFlags</type> <name>VkInstanceCreateFlags</name>;</type>
    <type category="bitmask">typedef <type>VkFlags</type> <name>VkDeviceCreateFlags</name>;</type>
    <type bitvalues="VkAccessFlagBits2" category="bitmask">typedef <type>VkFlags64</type> <name>VkAccessFlags2</name>;</type>
    <type category="bitmask" name="VkAccessFlags2KHR" alias="VkAccessFlags2"/>
    <type category="handle" objtypeenum="VK_OBJECT_TYPE_INSTANCE"><type>VK_DEFINE_HANDLE</type>(<name>VkInstance</name>)</type>
    <type category="handle" parent="VkInstance" objtypeenum="VK_OBJECT_TYPE_PHYSICAL_DEVICE"><type>VK_DEFINE_HANDLE</type>(<name>VkPhysicalDevice</name>)</type>
    <type category="handle" parent="VkInstance" objtypeenum="VK_OBJECT_TYPE_SURFACE_KHR"><type>VK_DEFINE_NON_DISPATCHABLE_HANDLE</type>(<name>VkSurfaceKHR</name>)</type>
    <type name="VkStructureType" category="enum"/>
    <type name="VkResult" category="enum"/>
    <type name="VkInstanceCreateFlagBits" category="enum"/>
    <type name="VkAccessFlagBits2" category="enum"/>
    <type name="VkAccessFlagBits2KHR" category="enum" alias="VkAccessFlagBits2"/>
    <type category="struct" name="VkApplicationInfo">
      <member values="VK_STRUCTURE_TYPE_APPLICATION_INFO"><type>VkStructureType</type> <name>sType</name></member>
      <member optional="true">const <type>void</type>* <name>pNext</name></member>
      <member optional="true" len="null-terminated">const <type>char</type>* <name>pApplicationName</name></member>
      <member><type>uint32_t</type> <name>apiVersion</name></member>
    </type>
    <type category="struct" name="VkPhysicalDeviceProperties" returnedonly="true">
      <member><type>uint32_t</type> <name>apiVersion</name></member>
      <member><type>char</type> <name>deviceName</name>[<enum>VK_MAX_PHYSICAL_DEVICE_NAME_SIZE</enum>]</member>
      <member><type>uint8_t</type> <name>pipelineCacheUUID</name>[<enum>VK_UUID_SIZE</enum>]</member>
    </type>
    <type category="struct" name="VkTransformMatrixKHR">
      <member><type>float</type> <name>matrix</name>[3][4]</member>
    </type>
    <type category="struct" name="VkWin32SurfaceCreateInfoKHR">
      <member values="VK_STRUCTURE_TYPE_WIN32_SURFACE_CREATE_INFO_KHR"><type>VkStructureType</type> <name>sType</name></member>
      <member optional="true">const <type>void</type>* <name>pNext</name></member>
      <member><type>HINSTANCE</type> <name>hinstance</name></member>
      <member><type>HWND</type> <name>hwnd</name></member>
    </type>
    <type category="struct" name="VkFaultData" api="vulkansc">
      <member><type>uint32_t</type> <name>faultLevel</name></member>
    </type>
  </types>
  <enums name="API Constants">
    <enum type="uint32_t" value="256" name="VK_MAX_PHYSICAL_DEVICE_NAME_SIZE"/>
    <enum type="uint32_t" value="16" name="VK_UUID_SIZE"/>
  </enums>
  <enums name="VkStructureType" type="enum">
    <enum value="0" name="VK_STRUCTURE_TYPE_APPLICATION_INFO"/>
    <enum value="1" name="VK_STRUCTURE_TYPE_INSTANCE_CREATE_INFO"/>
  </enums>
  <enums name="VkResult" type="enum">
    <enum value="0" name="VK_SUCCESS"/>
    <enum value="-1" name="VK_ERROR_OUT_OF_HOST_MEMORY"/>
  </enums>
  <enums name="VkInstanceCreateFlagBits" type="bitmask">
  </enums>
  <enums name="VkAccessFlagBits2" type="bitmask" bitwidth="64">
    <enum value="0" name="VK_ACCESS_2_NONE"/>
    <enum bitpos="0" name="VK_ACCESS_2_INDIRECT_COMMAND_READ_BIT"/>
    <enum name="VK_ACCESS_2_NONE_KHR" alias="VK_ACCESS_2_NONE"/>
  </enums>
  <commands>
    <command successcodes="VK_SUCCESS" errorcodes="VK_ERROR_OUT_OF_HOST_MEMORY">
      <proto><type>VkResult</type> <name>vkCreateInstance</name></proto>
      <param>const <type>VkInstanceCreateInfo</type>* <name>pCreateInfo</name></param>
      <param optional="true">const <type>VkAllocationCallbacks</type>* <name>pAllocator</name></param>
      <param><type>VkInstance</type>* <name>pInstance</name></param>
    </command>
    <command successcodes="VK_SUCCESS,VK_INCOMPLETE" errorcodes="VK_ERROR_OUT_OF_HOST_MEMORY">
      <proto><type>VkResult</type> <name>vkEnumeratePhysicalDevices</name></proto>
      <param><type>VkInstance</type> <name>instance</name></param>
      <param optional="false,true"><type>uint32_t</type>* <name>pPhysicalDeviceCount</name></param>
      <param optional="true" len="pPhysicalDeviceCount"><type>VkPhysicalDevice</type>* <name>pPhysicalDevices</name></param>
    </command>
    <command name="vkEnumeratePhysicalDevicesKHR" alias="vkEnumeratePhysicalDevices"/>
    <command successcodes="VK_SUCCESS" errorcodes="VK_ERROR_OUT_OF_HOST_MEMORY">
      <proto><type>VkResult</type> <name>vkCreateWin32SurfaceKHR</name></proto>
      <param><type>VkInstance</type> <name>instance</name></param>
      <param>const <type>VkWin32SurfaceCreateInfoKHR</type>* <name>pCreateInfo</name></param>
      <param optional="true">const <type>VkAllocationCallbacks</type>* <name>pAllocator</name></param>
      <param><type>VkSurfaceKHR</type>* <name>pSurface</name></param>
    </command>
  </commands>
  <feature api="vulkan,vulkansc" name="VK_VERSION_1_0" number="1.0" comment="Vulkan core API interface definitions">
    <require comment="Device initialization">
      <type name="VkInstance"/>
      <type name="VkPhysicalDevice"/>
      <type name="VkApplicationInfo"/>
      <type name="VkPhysicalDeviceProperties"/>
      <type name="VkStructureType"/>
      <type name="VkResult"/>
      <type name="VkInstanceCreateFlags"/>
      <type name="VkInstanceCreateFlagBits"/>
      <command name="vkCreateInstance"/>
      <command name="vkEnumeratePhysicalDevices"/>
    </require>
  </feature>
  <feature api="vulkan" name="VK_VERSION_1_3" number="1.3">
    <require>
      <type name="VkAccessFlags2"/>
      <type name="VkAccessFlagBits2"/>
      <enum extends="VkStructureType" extnumber="315" offset="0" name="VK_STRUCTURE_TYPE_MEMORY_BARRIER_2"/>
    </require>
  </feature>
  <feature api="vulkansc" name="VKSC_VERSION_1_0" number="1.0">
    <require>
      <type name="VkFaultData"/>
    </require>
  </feature>
  <extensions>
    <extension name="VK_KHR_surface" number="1" type="instance" author="KHR" supported="vulkan,vulkansc">
      <require>
        <enum value="25" name="VK_KHR_SURFACE_SPEC_VERSION"/>
        <enum offset="0" extends="VkResult" dir="-" name="VK_ERROR_SURFACE_LOST_KHR"/>
        <type name="VkSurfaceKHR"/>
      </require>
    </extension>
    <extension name="VK_NV_extension_1" number="2" author="NV" supported="disabled">
      <require>
        <enum offset="0" extends="VkResult" name="VK_NV_EXTENSION_1_RESERVED"/>
      </require>
    </extension>
    <extension name="VK_KHR_xlib_surface" number="5" type="instance" depends="VK_KHR_surface" platform="xlib" author="KHR" supported="vulkan">
      <require>
        <type name="VkXlibSurfaceCreateInfoKHR"/>
        <command name="vkCreateXlibSurfaceKHR"/>
      </require>
    </extension>
    <extension name="VK_KHR_win32_surface" number="10" type="instance" depends="VK_KHR_surface" platform="win32" author="KHR" supported="vulkan">
      <require>
        <enum offset="0" extends="VkStructureType" name="VK_STRUCTURE_TYPE_WIN32_SURFACE_CREATE_INFO_KHR"/>
        <type name="VkWin32SurfaceCreateInfoKHR"/>
        <command name="vkCreateWin32SurfaceKHR"/>
      </require>
    </extension>
    <extension name="VK_NV_glsl_shader" number="13" type="device" author="NV" supported="vulkan">
      <require>
        <enum offset="0" extends="VkResult" dir="-" name="VK_ERROR_INVALID_SHADER_NV"/>
      </require>
    </extension>
  </extensions>
</registry>
"""


@pytest.fixture
def existing_paths(tmp_path: Path) -> dict[str, Path]:
    vk_xml = tmp_path / "vk.xml"
    vk_xml.write_text("<registry />\n", encoding="utf-8")

    output_dir = tmp_path / "out"
    return {
        "vk_xml": vk_xml,
        "output_dir": output_dir,
    }


@pytest.fixture
def missing_path(tmp_path: Path) -> Path:
    return tmp_path / "missing"


@pytest.fixture
def make_args(existing_paths: dict[str, Path]) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "vk_xml": existing_paths["vk_xml"],
            "output_dir": existing_paths["output_dir"],
            "namespace": None,
            "api": "vulkan",
            "feature": None,
            "author": None,
            "platform": None,
            "list_features": False,
            "list_extensions": False,
            "filter": None,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


@pytest.fixture
def make_registry_root() -> Callable[[str], ET.Element]:
    def _make_registry_root(inner_xml: str) -> ET.Element:
        return ET.fromstring(f"<registry>{inner_xml}</registry>")

    return _make_registry_root


@pytest.fixture
def make_raw_registry(
    make_registry_root: Callable[[str], ET.Element],
) -> Callable[[str], vkcsgen.RawRegistry]:
    def _make_raw_registry(inner_xml: str) -> vkcsgen.RawRegistry:
        return vkcsgen.parse_raw_registry(make_registry_root(inner_xml))

    return _make_raw_registry


@pytest.fixture
def sample_vk_xml(tmp_path: Path) -> Path:
    path = tmp_path / "vk.xml"
    path.write_text(SAMPLE_VK_XML, encoding="utf-8")
    return path


@pytest.fixture
def sample_raw() -> vkcsgen.RawRegistry:
    return vkcsgen.parse_raw_registry(ET.fromstring(SAMPLE_VK_XML.encode("utf-8")))


@pytest.fixture
def sample_registry(sample_raw: vkcsgen.RawRegistry) -> vkcsgen.Registry:
    return vkcsgen.build_registry(sample_raw)
