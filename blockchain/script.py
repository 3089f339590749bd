from typing import List, BinaryIO

from utils.helper import int_to_bytes, bytes_to_int, read_exact, read_varint, encode_varint


class Script:
    def __init__(self, commands: List[bytes | int] | None = None):
        self.commands: List[bytes | int] = commands if commands is not None else []

    def __str__(self) -> str:
        result = ""
        for command in self.commands:
            if isinstance(command, int):
                result += f"OP_{command:02x}"
            else:
                result += f"{command.hex()}"
            result += "\n"

        return result[:-1]

    @classmethod
    def parse(cls, stream: BinaryIO) -> 'Script':
        script_len = read_varint(stream)
        commands = []
        i = 0

        while i < script_len:
            cmd_numeric = read_exact(stream, 1)[0]
            i += 1
            if 0 < cmd_numeric < 76:  # Push next cmd bytes into stack
                commands.append(read_exact(stream, cmd_numeric))
                i += cmd_numeric
            elif 76 <= cmd_numeric <= 78:  # 76 OP_PUSHDATA1, 77 OP_PUSHDATA2, 78 OP_PUSHDATA4
                num_bytes = 1 << (cmd_numeric - 76)
                length = bytes_to_int(read_exact(stream, num_bytes))
                commands.append(read_exact(stream, length))
                i += num_bytes + length
            else:  # op code
                commands.append(cmd_numeric)

        if i != script_len:
            raise ValueError(f"Script length mismatch: declared {script_len}, parsed {i}")
        return cls(commands)
    
    def serialize(self) -> bytes:
        result: bytes = b""

        for command in self.commands:
            if isinstance(command, int):
                result += int_to_bytes(command, 1)
            else:
                length = len(command)
                if length < 76:
                    result += bytes([length]) 
                elif length < 0x100:     # OP_PUSHDATA1
                    result += b"\x4c" + bytes([length])
                elif length < 0x10000:   # OP_PUSHDATA2
                    result += b"\x4d" + int_to_bytes(length, 2)
                else:                    # OP_PUSHDATA4
                    result += b"\x4e" + int_to_bytes(length, 4)

                result += command

        num_bytes = len(result)
        return encode_varint(num_bytes) + result

    def __eq__(self, other):
        return isinstance(other, Script) and self.commands == other.commands


def coinbase_script_sig(height: int, tag: bytes = b"", extra_nonce: int = 0) -> Script:
    """Coinbase scriptSig: <8B height> <64B extra nonce> <tag>"""
    commands: List[bytes | int] = [int_to_bytes(height, 8), int_to_bytes(extra_nonce, 64)]
    if tag:
        commands.append(tag)
    return Script(commands)
