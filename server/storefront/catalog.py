"""スプレッドシート (CSV エクスポート) からのカタログ取得.

必須列: brand, sku, product description (または productdescription)。
見出しは大文字小文字を区別しない。必須列が空の行は読み飛ばす。
"""

from __future__ import annotations

import csv
import io
import logging
import re

import requests

from storefront.config import REQUEST_TIMEOUT, SHEET_CSV_URL
from storefront.errors import InternalError
from storefront.models import CatalogItem

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def fetch_catalog(url: str | None = None) -> list[CatalogItem]:
    """CSV をダウンロードしてカタログ商品のリストを返す.

    Raises:
        InternalError: URL 未設定・取得失敗
    """
    url = url or SHEET_CSV_URL
    if not url:
        raise InternalError("Catalog source is not configured", hint="Set SHEET_CSV_URL")

    try:
        resp = requests.get(url, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.error("カタログ CSV 取得失敗: url=%s, error=%s", url, e)
        raise InternalError("Failed to fetch catalog data", details=str(e)) from e

    resp.encoding = "utf-8"
    items = parse_catalog_csv(resp.text)
    logger.info("カタログ取得: %d 件", len(items))
    return items


def parse_catalog_csv(text: str) -> list[CatalogItem]:
    """CSV テキストを CatalogItem のリストにする."""
    reader = csv.reader(io.StringIO(text.strip()))
    try:
        headers = [h.strip().lower() for h in next(reader)]
    except StopIteration:
        return []

    items: list[CatalogItem] = []
    for values in reader:
        if len(values) < len(headers):
            continue
        row = {h: (values[i] or "").strip() for i, h in enumerate(headers)}

        brand = row.get("brand", "")
        sku = row.get("sku", "")
        description = row.get("product description") or row.get("productdescription") or ""
        if not (brand and sku and description):
            continue

        items.append(CatalogItem(
            id=make_item_id(brand, sku),
            brand=brand,
            name=sku,
            grade=row.get("grade") or "Standard",
            min_qty=_parse_int(row.get("qty"), 1),
            price=_parse_price(row.get("wholesale price")),
            description=description,
            category=row.get("category") or None,
        ))
    return items


def make_item_id(brand: str, sku: str) -> str:
    return _WHITESPACE.sub("-", f"{brand}-{sku}".lower())


def _parse_int(value: str | None, default: int) -> int:
    try:
        return int(value) or default
    except (TypeError, ValueError):
        return default


def _parse_price(value: str | None) -> float:
    if not value:
        return 0.0
    try:
        return float(value.replace("$", "").replace(",", ""))
    except ValueError:
        return 0.0


def filter_catalog(
    items: list[CatalogItem],
    brand: str | None = None,
    grade: str | None = None,
    search: str | None = None,
) -> list[CatalogItem]:
    """ブランド・グレードの完全一致と、商品名・ブランド・説明の部分一致で絞り込む."""
    result = items
    if brand:
        result = [i for i in result if i.brand.lower() == brand.lower()]
    if grade:
        result = [i for i in result if i.grade.lower() == grade.lower()]
    if search:
        term = search.lower()
        result = [
            i for i in result
            if term in i.name.lower()
            or term in i.brand.lower()
            or term in (i.description or "").lower()
        ]
    return result
