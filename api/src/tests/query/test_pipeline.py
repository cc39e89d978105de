"""Test the sort, page and shape pipeline end to end over memory."""

from dataclasses import dataclass

import pytest
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from adms.core.errors import InvalidPageParameterError, UnknownShapeFieldError, UnknownSortFieldError
from adms.query.mapping import MappingEntry
from adms.query.pagination import ResourceParameters
from adms.query.pipeline import fetch_page, fetch_shaped_page
from adms.query.sorting import OrderKey
from adms.query.sources import InMemorySource


@dataclass
class Employee:
    id: int
    first_name: str
    last_name: str
    salary: int


class EmployeeDto(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    first_name: str
    last_name: str
    salary: int


MAPPING = {
    "id": MappingEntry("id", ("id",)),
    "name": MappingEntry("name", ("last_name", "first_name")),
    "firstName": MappingEntry("firstName", ("first_name",)),
    "lastName": MappingEntry("lastName", ("last_name",)),
    "salary": MappingEntry("salary", ("salary",)),
}


class CountingSource(InMemorySource[Employee]):
    """In-memory source that records whether it was read."""

    reads = 0

    async def count(self) -> int:
        CountingSource.reads += 1
        return await super().count()


@pytest.fixture
def employees() -> InMemorySource[Employee]:
    return InMemorySource(
        [
            Employee(1, "Ann", "Smith", 500),
            Employee(2, "Bob", "Jones", 700),
            Employee(3, "Cid", "Adams", 700),
            Employee(4, "Dee", "Jones", 300),
            Employee(5, "Eve", "Brown", 900),
        ],
        primary_key=("id",),
    )


class TestFetchPage:
    """Test sorting then paging."""

    async def test_order_by_then_page(self, employees: InMemorySource[Employee]) -> None:
        """Test the requested order is applied before slicing."""
        page = await fetch_page(
            employees,
            ResourceParameters(page_number=1, page_size=3, order_by="name"),
            mapping=MAPPING,
        )

        assert [e.id for e in page.items] == [3, 5, 2]
        assert page.total_count == 5
        assert page.total_pages == 2

    async def test_default_order_when_none_requested(self, employees: InMemorySource[Employee]) -> None:
        """Test default_order is used when orderBy is missing."""
        page = await fetch_page(
            employees,
            ResourceParameters(page_size=2),
            mapping=MAPPING,
            default_order=[OrderKey("salary", True), OrderKey("id")],
        )
        assert [e.id for e in page.items] == [5, 2]

    async def test_requested_order_overrides_default(self, employees: InMemorySource[Employee]) -> None:
        """Test an explicit orderBy wins over default_order."""
        page = await fetch_page(
            employees,
            ResourceParameters(page_size=2, order_by="salary"),
            mapping=MAPPING,
            default_order=[OrderKey("salary", True)],
        )
        assert [e.id for e in page.items] == [4, 1]

    async def test_ties_broken_by_primary_key(self, employees: InMemorySource[Employee]) -> None:
        """Test equal salaries come back in id order."""
        page = await fetch_page(
            employees,
            ResourceParameters(page_number=2, page_size=2, order_by="salary desc"),
            mapping=MAPPING,
        )
        assert [e.id for e in page.items] == [3, 1]

    async def test_unknown_sort_field(self, employees: InMemorySource[Employee]) -> None:
        """Test an unmapped orderBy field raises."""
        with pytest.raises(UnknownSortFieldError):
            await fetch_page(employees, ResourceParameters(order_by="age"), mapping=MAPPING)

    async def test_invalid_page_number(self, employees: InMemorySource[Employee]) -> None:
        """Test page numbers below 1 are rejected."""
        with pytest.raises(InvalidPageParameterError):
            await fetch_page(employees, ResourceParameters(page_number=0), mapping=MAPPING)


class TestFetchShapedPage:
    """Test the full pipeline."""

    async def test_shapes_requested_fields(self, employees: InMemorySource[Employee]) -> None:
        """Test items carry only the requested fields, keyed as the client sees them."""
        shaped = await fetch_shaped_page(
            employees,
            ResourceParameters(page_size=2, order_by="salary desc", fields="lastName, id"),
            mapping=MAPPING,
            dto_type=EmployeeDto,
        )

        assert shaped.items == [
            {"lastName": "Brown", "id": 5},
            {"lastName": "Jones", "id": 2},
        ]
        assert shaped.page.total_count == 5
        assert isinstance(shaped.page.items[0], EmployeeDto)

    async def test_all_fields_by_default(self, employees: InMemorySource[Employee]) -> None:
        """Test no fields parameter shapes every DTO field."""
        shaped = await fetch_shaped_page(
            employees,
            ResourceParameters(page_size=1, order_by="id"),
            mapping=MAPPING,
            dto_type=EmployeeDto,
        )
        assert shaped.items == [{"id": 1, "firstName": "Ann", "lastName": "Smith", "salary": 500}]

    async def test_unknown_shape_field_fails_before_reading(self) -> None:
        """Test a bad fields parameter is rejected without touching the source."""
        source = CountingSource([Employee(1, "Ann", "Smith", 500)], primary_key=("id",))
        CountingSource.reads = 0

        with pytest.raises(UnknownShapeFieldError):
            await fetch_shaped_page(
                source,
                ResourceParameters(fields="id,shoeSize"),
                mapping=MAPPING,
                dto_type=EmployeeDto,
            )

        assert CountingSource.reads == 0
