from typing import Tuple


def unpack_tags(tags: str | None) -> Tuple[Tuple[str, str], ...]:
    """Parse a ``key1=value1;key2=value2`` string into tag pairs.

    Empty segments (e.g. a trailing ``;``) are skipped.
    """
    tags_unpacked: list[Tuple[str, str]] = []
    if tags:
        try:
            for tag in tags.split(";"):
                if not tag.strip():
                    continue
                key, value = tag.split("=")
                key = key.strip()
                if not key:
                    raise ValueError(f"Empty tag key in {tag!r}")
                tags_unpacked.append((key, value.strip()))
        except ValueError:
            raise ValueError(
                "Tags must be in the format 'key1=value1;key2=value2', "
                f"but instead got {tags}"
            )
    return tuple(tags_unpacked)
