"""
Shapes accepted from the market-data providers. Anything that does not validate
(including the providers' rate-limit notices) is treated as a failed fetch.
"""
from pydantic import BaseModel, ConfigDict, Field


class NewsArticle(BaseModel):
    id: str
    site_region: str
    site_language: str
    author: str
    domain: str
    crawled: float
    language: str
    title: str
    site_type: str
    text: str
    url: str
    site: str
    site_country: str
    published: str


class NewsBody(BaseModel):
    restResults: int
    data: list[NewsArticle] = Field(min_length=25)
    totalResults: int


class News(BaseModel):
    response: NewsBody

    model_config = ConfigDict(extra="allow")


class StockIndicator(BaseModel):
    ticker: str
    price: float
    change_amount: float
    change_percentage: str
    volume: float


class StockTrends(BaseModel):
    metadata: str
    last_updated: str
    top_gainers: list[StockIndicator]
    top_losers: list[StockIndicator]
    most_actively_traded: list[StockIndicator]


class IndicatorPoint(BaseModel):
    date: str = Field(pattern=r"^\d{4,}-\d{2}-\d{2}$")
    value: float


class IndicatorSeries(BaseModel):
    data: list[IndicatorPoint]

    model_config = ConfigDict(extra="allow")
