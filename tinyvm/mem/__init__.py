# TinyVM memory model: flat cell block + stack
