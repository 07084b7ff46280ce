"""Portfolio input derivation service.

This module turns raw account and transaction history into the numeric
calculator inputs the projection services accept:
- Current holdings and cost basis from trade history
- Mark-to-market values per account from stock quotes
- Net worth across accounts with exchange rates
- Historical CAGR as the expected return
- Trailing-twelve-month expenses and savings

Transactions are rows with ``date``, ``account_id``, ``amount`` and
``category``; trades additionally carry ``ticker``, ``shares`` (negative
for sells), ``price_per_share`` and ``fee``. Quotes carry ``symbol``,
``regularMarketPrice`` and ``regularMarketChangePercent``.
"""

import math
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from loguru import logger

from fireplan.config import get_config
from fireplan.schemas import DerivedInputs
from fireplan.utils import round_half_up, safe_divide

Records = Union[pd.DataFrame, Iterable[dict], None]

TRANSACTION_COLUMNS = [
    "date",
    "account_id",
    "amount",
    "category",
    "ticker",
    "shares",
    "price_per_share",
    "fee",
]
QUOTE_COLUMNS = ["symbol", "regularMarketPrice", "regularMarketChangePercent"]
ACCOUNT_COLUMNS = ["id", "balance", "exchange_rate"]


def _to_frame(records: Records, columns: List[str]) -> pd.DataFrame:
    """Normalise records into a DataFrame that has at least ``columns``."""
    if isinstance(records, pd.DataFrame):
        frame = records.copy()
    else:
        frame = pd.DataFrame(list(records or []))
    for column in columns:
        if column not in frame.columns:
            frame[column] = np.nan
    return frame


def _to_numeric(value) -> float:
    """Coerce a balance-like value to float, NaN when unusable."""
    if value is None or isinstance(value, bool):
        return math.nan
    try:
        number = float(value)
    except (TypeError, ValueError):
        return math.nan
    return number if math.isfinite(number) else math.nan


def _to_timestamp(value: Union[date, datetime, str, None]) -> pd.Timestamp:
    return pd.Timestamp.now() if value is None else pd.Timestamp(value)


class PortfolioService:
    """Service for deriving calculator inputs from account history."""

    def __init__(self):
        self.config = get_config()

    def _trade_mask(self, transactions: pd.DataFrame) -> pd.Series:
        has_ticker = transactions["ticker"].notna() & (transactions["ticker"] != "")
        has_shares = pd.to_numeric(transactions["shares"], errors="coerce").fillna(0) != 0
        return has_ticker & has_shares

    def build_holdings(self, transactions: Records) -> Tuple[pd.DataFrame, Optional[date]]:
        """Replay trades in date order into current holdings.

        Buys add ``price_per_share * shares + fee`` to cost basis; sells
        remove cost at the running average cost per share.

        Returns:
            Tuple of (holdings with ticker/shares/cost_basis, first trade date)
        """
        frame = _to_frame(transactions, TRANSACTION_COLUMNS)
        trades = frame[self._trade_mask(frame)].copy()
        trades["date"] = pd.to_datetime(trades["date"])
        trades = trades.sort_values("date", kind="stable")

        holdings: Dict[str, Dict[str, float]] = {}
        for trade in trades.itertuples(index=False):
            holding = holdings.setdefault(trade.ticker, {"shares": 0.0, "cost_basis": 0.0})
            shares = float(trade.shares)
            if shares > 0:
                price = 0.0 if pd.isna(trade.price_per_share) else float(trade.price_per_share)
                fee = 0.0 if pd.isna(trade.fee) else float(trade.fee)
                holding["shares"] += shares
                holding["cost_basis"] += price * shares + fee
            else:
                avg_cost = safe_divide(holding["cost_basis"], holding["shares"]) if holding["shares"] > 0 else 0.0
                shares_sold = abs(shares)
                holding["shares"] -= shares_sold
                holding["cost_basis"] -= shares_sold * avg_cost

        first_trade_date = trades["date"].iloc[0].date() if len(trades) else None
        current = pd.DataFrame(
            [
                {"ticker": ticker, "shares": h["shares"], "cost_basis": h["cost_basis"]}
                for ticker, h in holdings.items()
                if h["shares"] > self.config.min_holding_shares
            ],
            columns=["ticker", "shares", "cost_basis"],
        )
        return current.reset_index(drop=True), first_trade_date

    def merge_quotes(self, holdings: pd.DataFrame, quotes: Records) -> pd.DataFrame:
        """Attach prices and market values, largest position first."""
        quote_frame = _to_frame(quotes, QUOTE_COLUMNS).drop_duplicates("symbol")
        quote_frame = quote_frame.set_index("symbol")

        merged = holdings.copy()
        prices = merged["ticker"].map(quote_frame["regularMarketPrice"])
        changes = merged["ticker"].map(quote_frame["regularMarketChangePercent"])
        merged["price"] = prices.fillna(0.0).astype(float)
        merged["current_value"] = merged["shares"] * merged["price"]
        merged["roi"] = [
            safe_divide(value - cost, cost) * 100 if cost > 0 else 0.0
            for value, cost in zip(merged["current_value"], merged["cost_basis"])
        ]
        merged["change_percent"] = changes.fillna(0.0).astype(float)
        return merged.sort_values("current_value", ascending=False, kind="stable").reset_index(drop=True)

    def portfolio_totals(self, holdings: pd.DataFrame) -> Tuple[float, float]:
        """Total market value and total cost basis of merged holdings."""
        total_value = float(holdings["current_value"].fillna(0).sum()) if len(holdings) else 0.0
        total_cost_basis = float(holdings["cost_basis"].fillna(0).sum()) if len(holdings) else 0.0
        return total_value, total_cost_basis

    @staticmethod
    def _quote_price(quote_map: Dict[str, float], ticker: str) -> float:
        """Price for ``ticker``, retrying upper case; missing or zero prices give 0."""
        for symbol in (ticker, str(ticker).upper()):
            price = _to_numeric(quote_map.get(symbol))
            if price and not math.isnan(price):
                return price
        return 0.0

    def net_worth_market_values(self, transactions: Records, quotes: Records) -> Dict[object, float]:
        """Market value of open positions per account."""
        frame = _to_frame(transactions, TRANSACTION_COLUMNS)
        trades = frame[self._trade_mask(frame)].copy()
        trades["shares"] = trades["shares"].astype(float)

        quote_frame = _to_frame(quotes, QUOTE_COLUMNS)
        quote_map = dict(zip(quote_frame["symbol"], quote_frame["regularMarketPrice"]))

        market_values: Dict[object, float] = {}
        positions = trades.groupby(["account_id", "ticker"], sort=False)["shares"].sum()
        for (account_id, ticker), shares in positions.items():
            value = market_values.setdefault(account_id, 0.0)
            if shares > self.config.min_holding_shares:
                market_values[account_id] = value + shares * self._quote_price(quote_map, ticker)
        return market_values

    def compute_net_worth(self, accounts: Records, market_values: Optional[Dict[object, float]] = None) -> float:
        """Sum of ``(balance + market value) * exchange_rate`` over accounts."""
        market_values = market_values or {}
        frame = _to_frame(accounts, ACCOUNT_COLUMNS)

        total = 0.0
        for account in frame.to_dict("records"):
            balance = _to_numeric(account.get("balance"))
            market_value = _to_numeric(market_values.get(account.get("id")))
            rate = account.get("exchange_rate")
            rate = 1.0 if rate is None or pd.isna(rate) or not rate else float(rate)
            total += (
                (0.0 if math.isnan(balance) else balance)
                + (0.0 if math.isnan(market_value) else market_value)
            ) * rate
        return total

    def annualized_return(
        self,
        total_value: float,
        total_cost_basis: float,
        first_trade_date: Optional[date],
        as_of: Union[date, datetime, str, None] = None,
    ) -> Optional[float]:
        """Compound annual growth rate of the portfolio, in percent.

        Returns None when there is no cost basis or trade history, or when
        the rate is not finite.
        """
        if total_cost_basis <= 0 or first_trade_date is None:
            return None

        growth = total_value / total_cost_basis
        elapsed = _to_timestamp(as_of) - pd.Timestamp(first_trade_date)
        years_invested = max(
            elapsed.total_seconds() / 86400 / self.config.days_per_year,
            self.config.min_years_invested,
        )
        if growth < 0:
            return None

        annualized = (growth ** (1 / years_invested) - 1) * 100
        if not math.isfinite(annualized):
            return None
        return round(annualized, 2)

    def trailing_cashflow(
        self, transactions: Records, as_of: Union[date, datetime, str, None] = None
    ) -> Tuple[float, float]:
        """Annual expenses and savings over the trailing year.

        Trades and transfers are excluded. Savings are income minus
        expenses and may be negative.

        Returns:
            Tuple of (annual_expenses, annual_savings), rounded
        """
        frame = _to_frame(transactions, TRANSACTION_COLUMNS)
        one_year_ago = _to_timestamp(as_of) - pd.DateOffset(years=1)

        recent = frame[pd.to_datetime(frame["date"]) >= one_year_ago]
        recent = recent[~self._trade_mask(recent)]
        recent = recent[recent["category"] != self.config.transfer_category]

        amounts = pd.to_numeric(recent["amount"], errors="coerce").fillna(0.0)
        expenses = float(amounts[amounts < 0].abs().sum())
        income = float(amounts[amounts > 0].sum())
        return round_half_up(expenses), round_half_up(income - expenses)

    def derive_inputs(
        self,
        accounts: Records,
        transactions: Records,
        quotes: Records = None,
        as_of: Union[date, datetime, str, None] = None,
    ) -> DerivedInputs:
        """Derive all history-based calculator inputs in one pass."""
        holdings, first_trade_date = self.build_holdings(transactions)
        merged = self.merge_quotes(holdings, quotes)
        total_value, total_cost_basis = self.portfolio_totals(merged)

        market_values = self.net_worth_market_values(transactions, quotes)
        net_worth = self.compute_net_worth(accounts, market_values)
        expected_return = self.annualized_return(total_value, total_cost_basis, first_trade_date, as_of)
        annual_expenses, annual_savings = self.trailing_cashflow(transactions, as_of)

        logger.debug(
            "Derived inputs: net worth {}, expenses {}, savings {}, CAGR {}",
            net_worth,
            annual_expenses,
            annual_savings,
            expected_return,
        )
        return DerivedInputs(
            current_net_worth=round_half_up(net_worth),
            annual_expenses=annual_expenses,
            annual_savings=annual_savings,
            expected_return=expected_return,
            first_trade_date=first_trade_date,
        )
