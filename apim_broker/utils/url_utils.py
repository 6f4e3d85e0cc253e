def join_url(base: str, *paths: str) -> str:
    """Join an endpoint and path segments with exactly one slash between them."""
    url = base.rstrip("/")
    for path in paths:
        url = f"{url}/{path.strip('/')}"
    return url
