from app.models.access import RouteClass


class RouteClassifier:
    """Maps request paths to a RouteClass by longest matching prefix"""

    def __init__(self, protected_prefixes: list[str], auth_only_prefixes: list[str]) -> None:
        # Protected first so it wins ties of equal length
        self._table: list[tuple[str, RouteClass]] = [
            *((prefix, RouteClass.PROTECTED) for prefix in protected_prefixes),
            *((prefix, RouteClass.AUTH_ONLY) for prefix in auth_only_prefixes),
        ]

    def classify(self, path: str) -> RouteClass:
        best_length = -1
        best_class = RouteClass.PUBLIC
        for prefix, route_class in self._table:
            if path.startswith(prefix) and len(prefix) > best_length:
                best_length = len(prefix)
                best_class = route_class
        return best_class
