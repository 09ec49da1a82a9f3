"""A compiler from SysY syntax trees to Koopa IR and RISC-V assembly."""

__version__ = "0.1.0"