"""Errors raised by single-entity analytics operations."""


class ItemNotFoundError(LookupError):
    def __init__(self, item_id: int):
        super().__init__(f"Item not found: {item_id}")
        self.item_id = item_id


class CategoryNotFoundError(LookupError):
    def __init__(self, category_id: int):
        super().__init__(f"Category not found: {category_id}")
        self.category_id = category_id
