def path_matches(path: str, allowed_paths: set[str]) -> bool:
    """Check if path matches any allowed path, ignoring a trailing slash."""
    if path in allowed_paths:
        return True

    if path.endswith("/"):
        return path[:-1] in allowed_paths

    return path + "/" in allowed_paths


def clean_refs(refs) -> list[str]:
    """Keep only non-empty string references (URLs or data URIs)."""
    return [ref for ref in refs or [] if isinstance(ref, str) and ref.strip()]
