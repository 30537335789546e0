"""Read-only GraphQL Admin API queries for data the REST API does not expose."""

RETURNS = """
query getReturns($first: Int!, $after: String) {
  returns(first: $first, after: $after) {
    edges {
      node {
        id
        name
        status
        updatedAt
        order { id name }
      }
      cursor
    }
    pageInfo { hasNextPage }
  }
}
"""

RETURN = """
query getReturn($id: ID!) {
  return(id: $id) {
    id
    name
    status
    totalQuantity
    order {
      id
      name
      customer { id displayName email }
    }
    returnLineItems(first: 50) {
      edges {
        node {
          id
          quantity
          returnReason
          returnReasonNote
          refundableQuantity
          refundedQuantity
          customerNote
        }
      }
    }
  }
}
"""

_MONEY_VALUE = """
value {
  ... on DiscountPercentage { percentage }
  ... on DiscountAmount { amount { amount currencyCode } }
}
"""

DISCOUNTS = """
query getDiscounts($first: Int!, $after: String) {
  discountNodes(first: $first, after: $after) {
    edges {
      node {
        id
        discount {
          ... on DiscountCodeBasic {
            title
            status
            codes(first: 1) { edges { node { code } } }
            customerGets { %(value)s }
            startsAt
            endsAt
          }
          ... on DiscountAutomaticBasic {
            title
            status
            customerGets { %(value)s }
            startsAt
            endsAt
          }
        }
      }
      cursor
    }
    pageInfo { hasNextPage }
  }
}
""" % {"value": _MONEY_VALUE}

ORDER_EDITS = """
query getOrderEdits($orderId: ID!) {
  order(id: $orderId) {
    id
    name
    lineItems(first: 50) {
      edges { node { id title quantity } }
    }
  }
}
"""

PAYOUTS = """
query getPayouts($first: Int!, $after: String) {
  shopifyPaymentsAccount {
    payouts(first: $first, after: $after) {
      edges {
        node {
          id
          status
          issuedAt
          net { amount currencyCode }
          gross { amount currencyCode }
          summary {
            adjustmentsFee { amount currencyCode }
            chargesFee { amount currencyCode }
            refundsFee { amount currencyCode }
          }
        }
        cursor
      }
      pageInfo { hasNextPage }
    }
  }
}
"""

DISPUTES = """
query getDisputes($first: Int!, $after: String) {
  shopifyPaymentsAccount {
    disputes(first: $first, after: $after) {
      edges {
        node {
          id
          status
          initiatedAt
          amount { amount currencyCode }
          reasonDetails { reason }
          order { id name }
        }
        cursor
      }
      pageInfo { hasNextPage }
    }
  }
}
"""

ORDER_TRANSACTIONS = """
query getOrderTransactions($orderId: ID!) {
  order(id: $orderId) {
    id
    name
    transactions(first: 50) {
      id
      kind
      status
      amountSet { shopMoney { amount currencyCode } }
      gateway
      processedAt
      paymentDetails {
        ... on CardPaymentDetails { paymentMethodName }
      }
    }
  }
}
"""


def to_gid(resource: str, identifier: str) -> str:
    """Accept either a numeric id or a full gid://shopify/... id."""
    identifier = str(identifier)
    if identifier.startswith("gid://"):
        return identifier
    return f"gid://shopify/{resource}/{identifier}"
