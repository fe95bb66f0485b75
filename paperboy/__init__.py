"""Daily article aggregation from syndication feeds."""
