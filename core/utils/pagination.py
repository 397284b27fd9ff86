from fastapi import Query
from pydantic import BaseModel


# class for HistoryPagination
class HistoryPagination(BaseModel):
    page: int = 1
    page_size: int = 20

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


# Dependency used by the history endpoints
def history_pagination_params(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=50)) -> HistoryPagination:
    return HistoryPagination(page=page, page_size=page_size)
