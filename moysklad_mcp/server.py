import functools
import logging
import os
from typing import Annotated, Any, Dict, List, Literal, Optional

from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import BaseModel, Field

from moysklad_mcp.client import ENDPOINTS, get_client
from moysklad_mcp.errors import MoySkladError, format_error_for_mcp
from moysklad_mcp.query import (
    FilterCondition,
    build_filter,
    build_query_params,
    entity_meta,
    extract_pagination_meta,
    normalize_pagination,
    to_kopecks,
    to_rubles,
)

load_dotenv()

logger = logging.getLogger(__name__)

mcp = FastMCP("mcp-moysklad", log_level=os.getenv("MOYSKLAD_LOG_LEVEL", "INFO").upper())

Limit = Annotated[Optional[int], Field(ge=1, le=1000, description="Page size (max 1000, default 25)")]
Offset = Annotated[Optional[int], Field(ge=0, description="Pagination offset")]


class OrderPosition(BaseModel):
    product_id: str = Field(..., description="Product ID (UUID)")
    quantity: float = Field(..., ge=0.001, description="Quantity")
    price: Optional[float] = Field(None, description="Unit price in rubles; the product card price is used when omitted")
    discount: Optional[float] = Field(None, ge=0, le=100, description="Discount in percent")


def moysklad_tool(func):
    """Logs the tool call and turns MoySklad failures into MCP tool errors."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger.info("MCP tool %s called with %s", func.__name__, kwargs)
        try:
            return func(*args, **kwargs)
        except MoySkladError as e:
            logger.error("MCP tool %s failed: %s", func.__name__, e)
            raise ToolError(format_error_for_mcp(e)) from e

    return wrapper


def _archived_filter(archived: Optional[bool]) -> FilterCondition:
    return FilterCondition("archived", "=", bool(archived))


# --- products ---

@mcp.tool()
@moysklad_tool
def moysklad_get_products(
    search: Annotated[Optional[str], Field(description="Search by product name")] = None,
    article: Annotated[Optional[str], Field(description="Filter by article (SKU)")] = None,
    archived: Annotated[Optional[bool], Field(description="Return archived products instead of active ones (default false)")] = None,
    limit: Limit = None,
    offset: Offset = None,
) -> Dict[str, Any]:
    """
    Lists products from MoySklad with optional search and filtering.

    Args:
        search: Full-text search over product names.
        article: Exact article (SKU) to match.
        archived: When true, archived products are listed; active ones otherwise.
        limit: Page size, 1-1000. Defaults to 25.
        offset: Number of records to skip.

    Returns:
        A dictionary with 'products' (id, name, article, code, description, archived, updated)
        and 'pagination' (size, limit, offset, hasMore).
    """
    client = get_client()
    pagination = normalize_pagination(limit, offset)

    filters = []
    if article:
        filters.append(FilterCondition("article", "=", article))
    filters.append(_archived_filter(archived))

    params = build_query_params(
        filter=build_filter(filters),
        limit=pagination["limit"],
        offset=pagination["offset"],
        search=search,
    )
    response = client.get_list(ENDPOINTS["product"], params)

    return {
        "products": [
            {
                "id": p["id"],
                "name": p.get("name"),
                "article": p.get("article"),
                "code": p.get("code"),
                "description": p.get("description"),
                "archived": p.get("archived"),
                "updated": p.get("updated"),
            }
            for p in response.get("rows", [])
        ],
        "pagination": extract_pagination_meta(response.get("meta", {})),
    }


@mcp.tool()
@moysklad_tool
def moysklad_get_product(id: Annotated[str, Field(description="Product ID (UUID)")]) -> Dict[str, Any]:
    """
    Retrieves a single product with its prices.

    Args:
        id: Product ID (UUID).

    Returns:
        Product details; 'salePrices' (value, priceType) and 'buyPrice' are in rubles.
    """
    product = get_client().get_one(ENDPOINTS["product"], id)
    buy_price = product.get("buyPrice")

    return {
        "id": product["id"],
        "name": product.get("name"),
        "article": product.get("article"),
        "code": product.get("code"),
        "description": product.get("description"),
        "archived": product.get("archived"),
        "updated": product.get("updated"),
        "salePrices": [
            {"value": to_rubles(sp["value"]), "priceType": sp.get("priceType", {}).get("name")}
            for sp in product.get("salePrices", [])
        ],
        "buyPrice": to_rubles(buy_price["value"]) if buy_price else None,
        "weight": product.get("weight"),
        "volume": product.get("volume"),
    }


# --- stock ---

def _stock_row(item: Dict[str, Any]) -> Dict[str, Any]:
    stock = item.get("stock", 0)
    reserve = item.get("reserve", 0)
    return {
        "name": item.get("name"),
        "code": item.get("code"),
        "article": item.get("article"),
        "stock": stock,
        "reserve": reserve,
        "available": stock - reserve,
    }


@mcp.tool()
@moysklad_tool
def moysklad_get_stock(
    search: Annotated[Optional[str], Field(description="Search by product name")] = None,
    stock_mode: Annotated[
        Optional[Literal["all", "positiveOnly", "negativeOnly", "empty", "nonEmpty"]],
        Field(description="Which rows to return: all, positiveOnly, negativeOnly, empty, nonEmpty"),
    ] = None,
    limit: Limit = None,
    offset: Offset = None,
) -> Dict[str, Any]:
    """
    Reads current stock levels across all stores.

    Returns:
        A dictionary with 'items' (name, code, article, stock, reserve, available, salePrice in rubles)
        and 'pagination'.
    """
    client = get_client()
    pagination = normalize_pagination(limit, offset)

    params = build_query_params(limit=pagination["limit"], offset=pagination["offset"], search=search)
    if stock_mode:
        params["stockMode"] = stock_mode

    response = client.get_list(ENDPOINTS["stockAll"], params)

    items = []
    for item in response.get("rows", []):
        row = _stock_row(item)
        row["salePrice"] = to_rubles(item["salePrice"]) if item.get("salePrice") else None
        items.append(row)

    return {"items": items, "pagination": extract_pagination_meta(response.get("meta", {}))}


@mcp.tool()
@moysklad_tool
def moysklad_get_stock_by_store(
    store_id: Annotated[str, Field(description="Store ID (UUID)")],
    search: Annotated[Optional[str], Field(description="Search by product name")] = None,
    limit: Limit = None,
    offset: Offset = None,
) -> Dict[str, Any]:
    """
    Reads stock levels for a single store.

    Args:
        store_id: Store ID (UUID). Use moysklad_get_stores to look it up.

    Returns:
        A dictionary with 'storeId', 'items' (name, code, article, stock, reserve, available) and 'pagination'.
    """
    client = get_client()
    pagination = normalize_pagination(limit, offset)

    params = build_query_params(limit=pagination["limit"], offset=pagination["offset"], search=search)
    params["filter"] = f"store={client.entity_href('store', store_id)}"

    response = client.get_list(ENDPOINTS["stockByStore"], params)

    return {
        "storeId": store_id,
        "items": [_stock_row(item) for item in response.get("rows", [])],
        "pagination": extract_pagination_meta(response.get("meta", {})),
    }


# --- counterparties ---

@mcp.tool()
@moysklad_tool
def moysklad_get_counterparties(
    search: Annotated[Optional[str], Field(description="Search by name, INN, phone or email")] = None,
    company_type: Annotated[
        Optional[Literal["legal", "entrepreneur", "individual"]],
        Field(description="legal - company, entrepreneur - sole proprietor, individual - private person"),
    ] = None,
    tag: Annotated[Optional[str], Field(description="Filter by tag")] = None,
    archived: Annotated[Optional[bool], Field(description="Return archived counterparties (default false)")] = None,
    limit: Limit = None,
    offset: Offset = None,
) -> Dict[str, Any]:
    """
    Lists counterparties (customers and suppliers).

    Returns:
        A dictionary with 'counterparties' (id, name, companyType, legalTitle, inn, phone, email, tags)
        and 'pagination'.
    """
    client = get_client()
    pagination = normalize_pagination(limit, offset)

    filters = []
    if company_type:
        filters.append(FilterCondition("companyType", "=", company_type))
    if tag:
        filters.append(FilterCondition("tags", "=", tag))
    filters.append(_archived_filter(archived))

    params = build_query_params(
        filter=build_filter(filters),
        limit=pagination["limit"],
        offset=pagination["offset"],
        search=search,
    )
    response = client.get_list(ENDPOINTS["counterparty"], params)

    return {
        "counterparties": [
            {
                "id": cp["id"],
                "name": cp.get("name"),
                "companyType": cp.get("companyType"),
                "legalTitle": cp.get("legalTitle"),
                "inn": cp.get("inn"),
                "phone": cp.get("phone"),
                "email": cp.get("email"),
                "tags": cp.get("tags"),
            }
            for cp in response.get("rows", [])
        ],
        "pagination": extract_pagination_meta(response.get("meta", {})),
    }


@mcp.tool()
@moysklad_tool
def moysklad_get_counterparty(id: Annotated[str, Field(description="Counterparty ID (UUID)")]) -> Dict[str, Any]:
    """Retrieves a single counterparty with its requisites and contacts."""
    cp = get_client().get_one(ENDPOINTS["counterparty"], id)
    return {
        "id": cp["id"],
        "name": cp.get("name"),
        "companyType": cp.get("companyType"),
        "legalTitle": cp.get("legalTitle"),
        "inn": cp.get("inn"),
        "kpp": cp.get("kpp"),
        "phone": cp.get("phone"),
        "email": cp.get("email"),
        "actualAddress": cp.get("actualAddress"),
        "tags": cp.get("tags"),
        "updated": cp.get("updated"),
    }


# --- customer orders ---

@mcp.tool()
@moysklad_tool
def moysklad_get_orders(
    search: Annotated[Optional[str], Field(description="Search by order number")] = None,
    agent_id: Annotated[Optional[str], Field(description="Counterparty ID to filter by")] = None,
    state_id: Annotated[Optional[str], Field(description="Order state ID")] = None,
    date_from: Annotated[Optional[str], Field(description="Period start, YYYY-MM-DD")] = None,
    date_to: Annotated[Optional[str], Field(description="Period end, YYYY-MM-DD")] = None,
    limit: Limit = None,
    offset: Offset = None,
) -> Dict[str, Any]:
    """
    Lists customer orders, newest first.

    Args:
        search: Order number search.
        agent_id: Only orders of this counterparty.
        state_id: Only orders in this state.
        date_from: Inclusive start date (YYYY-MM-DD).
        date_to: Inclusive end date (YYYY-MM-DD).
        limit: Page size, 1-1000. Defaults to 25.
        offset: Number of records to skip.

    Returns:
        A dictionary with 'orders' (id, name, moment, sum in rubles, state, deliveryPlannedMoment)
        and 'pagination'.
    """
    client = get_client()
    pagination = normalize_pagination(limit, offset)

    filters = []
    if agent_id:
        filters.append(FilterCondition("agent", "=", client.entity_href("counterparty", agent_id)))
    if state_id:
        filters.append(
            FilterCondition("state", "=", f"{client.base_url}/entity/customerorder/metadata/states/{state_id}")
        )
    if date_from:
        filters.append(FilterCondition("moment", ">=", f"{date_from} 00:00:00"))
    if date_to:
        filters.append(FilterCondition("moment", "<=", f"{date_to} 23:59:59"))

    params = build_query_params(
        filter=build_filter(filters),
        limit=pagination["limit"],
        offset=pagination["offset"],
        search=search,
        order="moment,desc",
    )
    response = client.get_list(ENDPOINTS["customerorder"], params)

    return {
        "orders": [
            {
                "id": order["id"],
                "name": order.get("name"),
                "moment": order.get("moment"),
                "sum": to_rubles(order.get("sum", 0)),
                "state": (order.get("state") or {}).get("name"),
                "deliveryPlannedMoment": order.get("deliveryPlannedMoment"),
            }
            for order in response.get("rows", [])
        ],
        "pagination": extract_pagination_meta(response.get("meta", {})),
    }


@mcp.tool()
@moysklad_tool
def moysklad_get_order(
    id: Annotated[str, Field(description="Order ID (UUID)")],
    expand: Annotated[Optional[bool], Field(description="Load order positions (default true)")] = True,
) -> Dict[str, Any]:
    """
    Retrieves a customer order together with its positions.

    Returns:
        Order details with 'positions' (id, name, quantity, price, discount, sum); money is in rubles.
    """
    params = {}
    if expand is not False:
        params["expand"] = "positions,agent"

    order = get_client().get_one(ENDPOINTS["customerorder"], id, params)

    positions = None
    rows = (order.get("positions") or {}).get("rows")
    if rows is not None:
        positions = []
        for pos in rows:
            discount = pos.get("discount", 0)
            positions.append(
                {
                    "id": pos["id"],
                    "name": pos.get("assortment", {}).get("name"),
                    "quantity": pos["quantity"],
                    "price": to_rubles(pos["price"]),
                    "discount": discount,
                    "sum": pos["quantity"] * pos["price"] * (100 - discount) / 100 / 100,
                }
            )

    return {
        "id": order["id"],
        "name": order.get("name"),
        "moment": order.get("moment"),
        "sum": to_rubles(order.get("sum", 0)),
        "state": (order.get("state") or {}).get("name"),
        "deliveryPlannedMoment": order.get("deliveryPlannedMoment"),
        "positions": positions,
    }


@mcp.tool()
@moysklad_tool
def moysklad_create_order(
    organization_id: Annotated[str, Field(description="Own legal entity (organization) ID")],
    agent_id: Annotated[str, Field(description="Buyer counterparty ID")],
    positions: Annotated[List[OrderPosition], Field(min_length=1, description="Order positions")],
    store_id: Annotated[Optional[str], Field(description="Store ID")] = None,
    description: Annotated[Optional[str], Field(description="Order comment")] = None,
) -> Dict[str, Any]:
    """
    Creates a new customer order.

    Args:
        organization_id: ID of the organization selling the goods.
        agent_id: ID of the buying counterparty.
        positions: At least one position; prices are given in rubles.
        store_id: Store the goods ship from.
        description: Free-form comment.

    Returns:
        The created order's id, name, moment and sum (rubles).
    """
    if not positions:
        raise ToolError("Error: at least one order position is required")

    client = get_client()

    order_data: Dict[str, Any] = {
        "organization": entity_meta(client.entity_href("organization", organization_id), "organization"),
        "agent": entity_meta(client.entity_href("counterparty", agent_id), "counterparty"),
    }
    if store_id:
        order_data["store"] = entity_meta(client.entity_href("store", store_id), "store")

    order_positions = []
    for pos in positions:
        row: Dict[str, Any] = {
            "assortment": entity_meta(client.entity_href("product", pos.product_id), "product"),
            "quantity": pos.quantity,
        }
        if pos.price is not None:
            row["price"] = to_kopecks(pos.price)
        if pos.discount is not None:
            row["discount"] = pos.discount
        order_positions.append(row)
    order_data["positions"] = order_positions

    if description:
        order_data["description"] = description

    order = client.create(ENDPOINTS["customerorder"], order_data)
    logger.info("Created customer order %s", order.get("name"))

    return {
        "id": order["id"],
        "name": order.get("name"),
        "moment": order.get("moment"),
        "sum": to_rubles(order.get("sum", 0)),
    }


# --- reports ---

@mcp.tool()
@moysklad_tool
def moysklad_get_dashboard() -> Dict[str, Any]:
    """
    Returns today's summary: sales, orders and money. All amounts are in rubles.
    """
    dashboard = get_client().request(ENDPOINTS["dashboard"])
    sales = dashboard["sales"]
    orders = dashboard["orders"]
    money = dashboard["money"]

    return {
        "sales": {
            "count": sales["count"],
            "amount": to_rubles(sales["amount"]),
            "movementAmount": to_rubles(sales["movementAmount"]),
        },
        "orders": {
            "count": orders["count"],
            "amount": to_rubles(orders["amount"]),
            "movementAmount": to_rubles(orders["movementAmount"]),
        },
        "money": {
            "balance": to_rubles(money["balance"]),
            "credit": to_rubles(money["credit"]),
            "debit": to_rubles(money["debit"]),
        },
    }


# --- reference data ---

@mcp.tool()
@moysklad_tool
def moysklad_get_stores(
    search: Annotated[Optional[str], Field(description="Search by store name")] = None,
    limit: Limit = None,
    offset: Offset = None,
) -> Dict[str, Any]:
    """Lists stores (warehouses); their IDs are accepted by stock and order tools."""
    client = get_client()
    pagination = normalize_pagination(limit, offset)
    params = build_query_params(limit=pagination["limit"], offset=pagination["offset"], search=search)
    response = client.get_list(ENDPOINTS["store"], params)

    return {
        "stores": [
            {
                "id": store["id"],
                "name": store.get("name"),
                "address": store.get("address"),
                "archived": store.get("archived"),
            }
            for store in response.get("rows", [])
        ],
        "pagination": extract_pagination_meta(response.get("meta", {})),
    }


@mcp.tool()
@moysklad_tool
def moysklad_get_organizations(limit: Limit = None, offset: Offset = None) -> Dict[str, Any]:
    """Lists the account's own legal entities, needed as organization_id when creating orders."""
    client = get_client()
    pagination = normalize_pagination(limit, offset)
    params = build_query_params(limit=pagination["limit"], offset=pagination["offset"])
    response = client.get_list(ENDPOINTS["organization"], params)

    return {
        "organizations": [
            {
                "id": org["id"],
                "name": org.get("name"),
                "legalTitle": org.get("legalTitle"),
                "inn": org.get("inn"),
            }
            for org in response.get("rows", [])
        ],
        "pagination": extract_pagination_meta(response.get("meta", {})),
    }


def main():
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
