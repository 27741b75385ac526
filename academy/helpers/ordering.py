DIRECTIONS = ("up", "down")


def move_item(items, index, direction):
    """Swap ``items[index]`` with its neighbour; a copy is returned.

    Moving the first item up or the last item down leaves the order unchanged.
    """
    if direction not in DIRECTIONS:
        raise ValueError(f"direction must be one of {DIRECTIONS}")
    items = list(items)
    target = index - 1 if direction == "up" else index + 1
    if index < 0 or index >= len(items) or target < 0 or target >= len(items):
        return items
    items[index], items[target] = items[target], items[index]
    return items


def reindex(rows):
    """Rewrite ``order_index`` from list position."""
    for position, row in enumerate(rows):
        row.order_index = position
    return rows


def next_order_index(rows):
    return max((row.order_index for row in rows), default=-1) + 1
