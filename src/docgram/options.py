from dataclasses import dataclass, fields
from typing import Any, Mapping

from docgram.backend.runner import Budget
from docgram.diagnostics import Level

__all__ = ['Options']


@dataclass(frozen=True)
class Options:
    """Settings of a build.

    `grammar_tags` and `example_tags` are the first words of the block tags that are processed; blocks
    with any other tag are left alone.
    """
    grammar_tags: tuple[str, ...] = ('grammar', 'syntax')
    example_tags: tuple[str, ...] = ('example',)
    warn_only: bool = False  # report errors without failing the build
    require_full_match: bool = True  # examples must be consumed entirely
    max_steps: int | None = 1_000_000
    timeout: float | None = None
    max_depth: int | None = None
    exhausted_level: Level = Level.WARN
    link_root: str = '/'

    @property
    def budget(self) -> Budget:
        return Budget(self.max_steps, self.timeout, self.max_depth)

    @staticmethod
    def from_mapping(table: Mapping[str, Any]) -> 'Options':
        """Read options from a host-supplied table, e.g. a section of a configuration file.

        Keys may use dashes in place of underscores. Raise `ValueError` on unknown keys or bad values.
        """
        known = {f.name for f in fields(Options)}
        kwargs: dict[str, Any] = {}
        for key, value in table.items():
            name = key.replace('-', '_')
            if name not in known:
                raise ValueError(f"unknown option: {key!r}")
            kwargs[name] = Options._convert(name, value)
        return Options(**kwargs)

    @staticmethod
    def _convert(name: str, value: Any) -> Any:
        match name:
            case 'grammar_tags' | 'example_tags':
                if isinstance(value, str):
                    return (value,)
                if not all(isinstance(v, str) for v in value):
                    raise ValueError(f"option {name!r} expects a list of strings")
                return tuple(value)
            case 'warn_only' | 'require_full_match':
                if not isinstance(value, bool):
                    raise ValueError(f"option {name!r} expects a boolean")
                return value
            case 'max_steps' | 'max_depth':
                if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value <= 0):
                    raise ValueError(f"option {name!r} expects a positive integer")
                return value
            case 'timeout':
                if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))
                                          or value <= 0):
                    raise ValueError(f"option {name!r} expects a positive number of seconds")
                return None if value is None else float(value)
            case 'exhausted_level':
                if isinstance(value, Level):
                    return value
                try:
                    return Level[str(value).upper()]
                except KeyError:
                    raise ValueError(f"option {name!r} expects 'error' or 'warn'") from None
            case _:
                if not isinstance(value, str):
                    raise ValueError(f"option {name!r} expects a string")
                return value
