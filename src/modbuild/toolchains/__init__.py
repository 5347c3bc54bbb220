"""Compiler family adapters for module-aware builds."""

from .base import CompilerFamily, ModuleToolchain, UnsupportedCompilerError, detect_compiler_family
from .gcc import ClangModuleToolchain, GCCModuleToolchain
from .msvc import MSVCModuleToolchain

TOOLCHAINS: dict[CompilerFamily, type[ModuleToolchain]] = {
    CompilerFamily.CLANG: ClangModuleToolchain,
    CompilerFamily.GCC: GCCModuleToolchain,
    CompilerFamily.MSVC: MSVCModuleToolchain,
}


def create_toolchain(compiler: str) -> ModuleToolchain:
    """Create the adapter for a compiler.

    Raises:
        UnsupportedCompilerError: If the compiler is not a supported family
    """
    return TOOLCHAINS[detect_compiler_family(compiler)](compiler)


__all__ = [
    "TOOLCHAINS",
    "ClangModuleToolchain",
    "CompilerFamily",
    "GCCModuleToolchain",
    "MSVCModuleToolchain",
    "ModuleToolchain",
    "UnsupportedCompilerError",
    "create_toolchain",
    "detect_compiler_family",
]
