# TinyVM CPU model: register file, opcode table, 32-bit ALU
