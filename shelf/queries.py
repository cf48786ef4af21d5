"""GraphQL query text for each library query family.

String arguments are embedded with :func:`json.dumps` so quotes and
backslashes inside author names survive.
"""

from __future__ import annotations

import json
from typing import Iterable

LIBRARY_OPERATION = "ccGetCustomerLibraryBooks"
PRODUCT_DETAILS_OPERATION = "ccGetProductQuickView"

_FULL_BOOK_NODE = """asin
                relationshipType
                relationshipSubType
                relationshipCreationDate
                product {
                    asin
                    title {
                        displayString
                    }
                    byLine {
                        contributors {
                            name
                        }
                    }
                }"""


def _literal(value: str) -> str:
    return json.dumps(value)


def library_books_query(
    page_size: int, category: str, cursor: str, *, ids_only: bool = False
) -> str:
    """Books in the library, optionally restricted to a format category."""

    node_fields = "asin" if ids_only else _FULL_BOOK_NODE
    return f"""
    query {LIBRARY_OPERATION} {{
        getCustomerLibrary {{
            books(
                after: {_literal(cursor)}
                first: {page_size}
                sortBy: {{ sortField: ACQUISITION_DATE, sortOrder: DESCENDING }}
                selectionCriteria: {{ tags: [], query: {_literal(category)} }}
            ) {{
                pageInfo {{
                    hasNextPage
                    endCursor
                }}
                edges {{
                    node {{
                        {node_fields}
                    }}
                }}
            }}
        }}
    }}"""


def series_aggregation_query(
    keyword: str, genre_id: str, cursor: str, *, page_size: int = 100
) -> str:
    """Series in the library, filtered by keyword and/or genre."""

    return f"""
    query ccGroupQuery {{
        getCustomerLibrary {{
            seriesAggregation(
                first: {page_size}
                after: {_literal(cursor)}
                libraryType: OWNED
                searchCriteria: {{ keyword: {_literal(keyword)} }}
                selectionCriteria: {{ tags: [], query: {_literal(genre_id)} }}
            ) {{
                pageInfo {{
                    hasNextPage
                    endCursor
                }}
                totalCount {{
                    number
                }}
                edges {{
                    node {{
                        asin
                    }}
                }}
            }}
        }}
    }}"""


def genre_aggregation_query(cursor: str, *, page_size: int = 50) -> str:
    """All genres in the library with their subgenres."""

    return f"""
    query ccGroupQuery {{
        getCustomerLibrary {{
            genreAggregation(
                first: {page_size}
                after: {_literal(cursor)}
                libraryType: OWNED
                selectionCriteria: {{ tags: [], query: "" }}
            ) {{
                pageInfo {{
                    hasNextPage
                    endCursor
                }}
                edges {{
                    node {{
                        id
                        name
                        subGenre {{
                            id
                            name
                        }}
                    }}
                }}
            }}
        }}
    }}"""


def books_in_genre_query(
    genre_id: str, cursor: str, sub_genre_id: str = "", *, page_size: int = 300
) -> str:
    """Ids of books in a genre, or in one of its subgenres."""

    return f"""
    query ccSingleGroupAsinQuery {{
        getCustomerLibrary {{
            genre(genreId: {_literal(genre_id)}, libraryType: OWNED) {{
                id
                name
                books(
                    after: {_literal(cursor)}
                    first: {page_size}
                    selectionCriteria: {{ tags: [], query: {_literal(sub_genre_id)} }}
                ) {{
                    pageInfo {{
                        hasNextPage
                        endCursor
                    }}
                    edges {{
                        node {{
                            asin
                        }}
                    }}
                }}
            }}
        }}
    }}"""


def books_in_series_query(series_id: str, cursor: str, *, page_size: int = 50) -> str:
    """Ids of books in a series together with the series display title."""

    return f"""
    query ccSingleGroupAsinQuery {{
        getCustomerLibrary {{
            series(seriesId: {_literal(series_id)}, libraryType: OWNED) {{
                product {{
                    asin
                    title {{
                        displayString
                    }}
                }}
                books(
                    after: {_literal(cursor)}
                    first: {page_size}
                    selectionCriteria: {{ tags: [], query: "" }}
                ) {{
                    pageInfo {{
                        hasNextPage
                        endCursor
                    }}
                    edges {{
                        node {{
                            asin
                        }}
                    }}
                }}
            }}
        }}
    }}"""


def product_details_query(ids: Iterable[str]) -> str:
    """Overview attributes and series placement for a batch of products."""

    inputs = ",".join(f"{{asin: {_literal(item_id)}}}" for item_id in ids)
    return f"""
    query {PRODUCT_DETAILS_OPERATION} {{
        getProducts(input: [{inputs}]) {{
            asin
            overview {{
                sectionGroups {{
                    name {{
                        id
                    }}
                    sections {{
                        attributes {{
                            granularizedValue {{
                                displayContent
                            }}
                            label {{
                                displayContent
                                id
                            }}
                        }}
                    }}
                }}
            }}
            bookSeries {{
                singleBookView {{
                    series {{
                        title
                        position
                    }}
                }}
            }}
        }}
    }}"""
