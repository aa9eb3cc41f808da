"""
テスト用データ生成
Commerce platform shaped payloads for the test suite
"""

from analytics.models import Discount, Order


def discount_payload(id, name='Discount', is_active=True, cap_cents=None, currency='AUD',
                     application_cap=None, auto=None, campaign_key=None, campaign_name=None,
                     valid_from=None, valid_until=None, start_date=None, end_date=None,
                     value=None, version=1, key=None):
    fields = {}
    if cap_cents is not None:
        fields['cap'] = {'type': 'centPrecision', 'centAmount': cap_cents, 'currencyCode': currency, 'fractionDigits': 2}
    if application_cap is not None:
        fields['application-cap'] = application_cap
    if auto is not None:
        fields['auto'] = auto
    if campaign_key is not None:
        fields['campaign-key'] = campaign_key
    if campaign_name is not None:
        fields['campaign-name'] = campaign_name
    if start_date is not None:
        fields['start-date'] = start_date
    if end_date is not None:
        fields['end-date'] = end_date

    payload = {
        'id': id,
        'version': version,
        'name': {'en-AU': name},
        'value': value or {'type': 'relative', 'permyriad': 1000},
        'isActive': is_active,
        'cartPredicate': '1=1',
        'requiresDiscountCode': False,
        'sortOrder': '0.5',
    }
    if key is not None:
        payload['key'] = key
    if valid_from is not None:
        payload['validFrom'] = valid_from
    if valid_until is not None:
        payload['validUntil'] = valid_until
    if fields:
        payload['custom'] = {'type': {'typeId': 'type', 'id': 'discount-fields'}, 'fields': fields}
    return payload


def make_discount(id, **kwargs) -> Discount:
    return Discount.model_validate(discount_payload(id, **kwargs))


def line_item_payload(product_id='p1', name='Widget', quantity=1, price_cents=1000, sku='SKU-1',
                      discounts=None, currency='AUD'):
    """``discounts`` is a list of (discount_id, cents_per_unit, quantity)"""
    per_quantity = []
    for discount_id, cents, units in discounts or []:
        per_quantity.append({
            'quantity': units,
            'discountedPrice': {
                'value': {'centAmount': price_cents - cents, 'currencyCode': currency},
                'includedDiscounts': [{
                    'discount': {'typeId': 'cart-discount', 'id': discount_id},
                    'discountedAmount': {'centAmount': cents, 'currencyCode': currency},
                }],
            },
        })

    payload = {
        'id': f"li-{product_id}",
        'productId': product_id,
        'name': {'en-AU': name},
        'quantity': quantity,
        'price': {'value': {'centAmount': price_cents, 'currencyCode': currency}},
        'variant': {'id': 1},
        'totalPrice': {'centAmount': price_cents * quantity, 'currencyCode': currency},
        'discountedPricePerQuantity': per_quantity,
    }
    if sku is not None:
        payload['variant']['sku'] = sku
    return payload


def order_payload(id, created_at='2025-01-15T01:00:00.000Z', total_cents=10000, line_items=None,
                  state=None, city=None, currency='AUD'):
    payload = {
        'id': id,
        'version': 1,
        'createdAt': created_at,
        'lastModifiedAt': created_at,
        'orderState': 'Open',
        'totalPrice': {'centAmount': total_cents, 'currencyCode': currency},
        'lineItems': line_items if line_items is not None else [line_item_payload()],
    }
    if state is not None or city is not None:
        payload['billingAddress'] = {'state': state, 'city': city, 'country': 'AU'}
    return payload


def make_order(id, **kwargs) -> Order:
    return Order.model_validate(order_payload(id, **kwargs))
