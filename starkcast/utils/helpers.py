import json
import os
from typing import Optional, Any, Dict, List, Union


def save_to_file(output_directory: Optional[str], filename: str, code: str):
    if output_directory is not None:
        target = os.path.join(output_directory, filename)
    else:
        target = filename
    with open(target, "w") as f:
        f.write(code)
    return target


def read_file(filename: str):
    with open(filename, 'r') as f:
        return f.read()


def format_value(val: Any, value_format: str = 'default') -> Any:
    """
    Format felts for printing.

    :param value_format: 'hex' prints all ints as hex, 'int' as decimal, 'default' prints hashes and
                         addresses (ints with a custom type) as hex and plain ints as decimal.
    """
    if isinstance(val, bool) or val is None:
        return val
    if isinstance(val, int):
        if value_format == 'hex' or (value_format == 'default' and type(val) is not int):
            return hex(val)
        return int(val)
    if isinstance(val, (list, tuple)):
        return [format_value(v, value_format) for v in val]
    if isinstance(val, dict):
        return {k: format_value(v, value_format) for k, v in val.items()}
    return val


def format_result(command: str, result: Union[Dict, List], value_format: str = 'default', as_json: bool = False) -> str:
    """Render the result of a command the way the command line interface prints it."""
    if isinstance(result, dict):
        formatted = {'command': command, **format_value(result, value_format)}
    else:
        formatted = {'command': command, 'response': format_value(result, value_format)}
    if as_json:
        return json.dumps(formatted)
    return '\n'.join(f'{key}: {val}' for key, val in formatted.items())
