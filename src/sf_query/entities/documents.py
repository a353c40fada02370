"""
GraphQL query documents, one per entity kind.

Every document aliases its collection as ``result`` so the transport can
hand back a uniform ``{"result": [...]}`` payload.
"""

_TOKEN_FIELDS = """
    id
    createdAtTimestamp
    createdAtBlockNumber
    name
    symbol
    isListed
    underlyingAddress
"""

GET_TOKENS = f"""
query getTokens(
  $where: Token_filter = {{}}
  $orderBy: Token_orderBy = id
  $orderDirection: OrderDirection = asc
  $first: Int = 10
  $skip: Int = 0
) {{
  result: tokens(
    where: $where
    orderBy: $orderBy
    orderDirection: $orderDirection
    first: $first
    skip: $skip
  ) {{{_TOKEN_FIELDS}  }}
}}
"""

GET_INDEXES = f"""
query getIndexes(
  $where: Index_filter = {{}}
  $orderBy: Index_orderBy = id
  $orderDirection: OrderDirection = asc
  $first: Int = 10
  $skip: Int = 0
) {{
  result: indexes(
    where: $where
    orderBy: $orderBy
    orderDirection: $orderDirection
    first: $first
    skip: $skip
  ) {{
    id
    createdAtTimestamp
    createdAtBlockNumber
    updatedAtTimestamp
    updatedAtBlockNumber
    indexId
    totalUnitsPending
    totalUnitsApproved
    totalUnits
    totalAmountDistributedUntilUpdatedAt
    token {{{_TOKEN_FIELDS}    }}
    publisher {{
      id
    }}
  }}
}}
"""

GET_INDEX_SUBSCRIPTIONS = f"""
query getIndexSubscriptions(
  $where: IndexSubscription_filter = {{}}
  $orderBy: IndexSubscription_orderBy = id
  $orderDirection: OrderDirection = asc
  $first: Int = 10
  $skip: Int = 0
) {{
  result: indexSubscriptions(
    where: $where
    orderBy: $orderBy
    orderDirection: $orderDirection
    first: $first
    skip: $skip
  ) {{
    id
    createdAtTimestamp
    createdAtBlockNumber
    updatedAtTimestamp
    updatedAtBlockNumber
    subscriber {{
      id
    }}
    approved
    units
    totalAmountReceivedUntilUpdatedAt
    indexValueUntilUpdatedAt
    index {{
      id
      indexId
      indexValue
      token {{{_TOKEN_FIELDS}      }}
    }}
  }}
}}
"""

GET_STREAMS = f"""
query getStreams(
  $where: Stream_filter = {{}}
  $orderBy: Stream_orderBy = id
  $orderDirection: OrderDirection = asc
  $first: Int = 10
  $skip: Int = 0
) {{
  result: streams(
    where: $where
    orderBy: $orderBy
    orderDirection: $orderDirection
    first: $first
    skip: $skip
  ) {{
    id
    createdAtTimestamp
    createdAtBlockNumber
    updatedAtTimestamp
    updatedAtBlockNumber
    currentFlowRate
    streamedUntilUpdatedAt
    token {{{_TOKEN_FIELDS}    }}
    sender {{
      id
    }}
    receiver {{
      id
    }}
    flowUpdatedEvents {{
      id
      blockNumber
      timestamp
      transactionHash
      flowRate
      totalAmountStreamedUntilTimestamp
    }}
  }}
}}
"""

GET_ACCOUNT_TOKEN_SNAPSHOTS = f"""
query getAccountTokenSnapshots(
  $where: AccountTokenSnapshot_filter = {{}}
  $orderBy: AccountTokenSnapshot_orderBy = id
  $orderDirection: OrderDirection = asc
  $first: Int = 10
  $skip: Int = 0
) {{
  result: accountTokenSnapshots(
    where: $where
    orderBy: $orderBy
    orderDirection: $orderDirection
    first: $first
    skip: $skip
  ) {{
    id
    updatedAtTimestamp
    updatedAtBlockNumber
    totalNumberOfActiveStreams
    totalNumberOfClosedStreams
    totalSubscriptionsWithUnits
    totalApprovedSubscriptions
    balanceUntilUpdatedAt
    totalNetFlowRate
    totalInflowRate
    totalOutflowRate
    totalAmountStreamedUntilUpdatedAt
    totalAmountTransferredUntilUpdatedAt
    account {{
      id
    }}
    token {{{_TOKEN_FIELDS}    }}
  }}
}}
"""

GET_ALL_EVENTS = """
query getAllEvents(
  $where: Event_filter = {}
  $orderBy: Event_orderBy = id
  $orderDirection: OrderDirection = asc
  $first: Int = 10
  $skip: Int = 0
) {
  result: events(
    where: $where
    orderBy: $orderBy
    orderDirection: $orderDirection
    first: $first
    skip: $skip
  ) {
    __typename
    id
    name
    blockNumber
    logIndex
    order
    timestamp
    transactionHash
    addresses
    ... on FlowUpdatedEvent {
      token
      sender
      receiver
      flowRate
      oldFlowRate
      totalSenderFlowRate
      totalReceiverFlowRate
      userData
    }
    ... on IndexCreatedEvent {
      token
      publisher
      indexId
      userData
    }
    ... on IndexUpdatedEvent {
      token
      publisher
      indexId
      oldIndexValue
      newIndexValue
      totalUnitsPending
      totalUnitsApproved
      userData
    }
    ... on IndexSubscribedEvent {
      token
      publisher
      indexId
      subscriber
      userData
    }
    ... on IndexUnitsUpdatedEvent {
      token
      publisher
      indexId
      subscriber
      units
      oldUnits
      userData
    }
    ... on SubscriptionApprovedEvent {
      token
      subscriber
      publisher
      indexId
      userData
    }
    ... on TransferEvent {
      from {
        id
      }
      to {
        id
      }
      value
      token
    }
    ... on TokenUpgradedEvent {
      account {
        id
      }
      token
      amount
    }
    ... on TokenDowngradedEvent {
      account {
        id
      }
      token
      amount
    }
  }
}
"""
