"""
Candle Series - validated, time-ascending OHLCV input for one symbol/timeframe

The series is the engine's only data input. It is checked once, before the
replay loop starts:
- Required columns and finite values
- OHLC relationships (high >= max(open, close), low <= min(open, close))
- Non-negative volume
- Strictly increasing timestamps
"""

from typing import Any, Iterable, Iterator, List, Mapping, Optional, Sequence, Union
import logging

import numpy as np
import pandas as pd

from ..errors import DataError
from .models import Candle, TimestampLike, to_utc_timestamp

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ['open', 'high', 'low', 'close', 'volume']


class CandleSeries(Sequence[Candle]):
    """Immutable, validated sequence of candles"""

    def __init__(self, candles: Iterable[Candle], symbol: str = 'default', timeframe: str = ''):
        self.symbol = symbol
        self.timeframe = timeframe
        normalised = []
        for i, candle in enumerate(candles):
            try:
                normalised.append(_normalise(candle))
            except (AttributeError, TypeError, ValueError) as e:
                raise DataError(f"Malformed candle at position {i}: {e}") from e
        self._candles: tuple = tuple(normalised)
        self.validate()

    @classmethod
    def from_records(cls, records: Iterable[Union[Candle, Mapping[str, Any], Sequence[Any]]],
                     symbol: str = 'default', timeframe: str = '') -> 'CandleSeries':
        """
        Build a series from candles, mappings or (timestamp, o, h, l, c, v) rows

        Args:
            records: Candle records in time order
            symbol: Trading symbol
            timeframe: Bar interval label (e.g. '1h')

        Returns:
            Validated CandleSeries
        """
        candles = []
        for i, record in enumerate(records):
            try:
                if isinstance(record, Mapping):
                    candle = Candle(
                        timestamp=record['timestamp'],
                        open=record['open'],
                        high=record['high'],
                        low=record['low'],
                        close=record['close'],
                        volume=record.get('volume', 0.0),
                    )
                else:
                    candle = Candle(*record)
                candles.append(candle)
            except (KeyError, TypeError, ValueError) as e:
                raise DataError(f"Malformed candle at position {i}: {e}") from e
        return cls(candles, symbol=symbol, timeframe=timeframe)

    @classmethod
    def from_dataframe(cls, data: pd.DataFrame, symbol: str = 'default',
                       timeframe: str = '') -> 'CandleSeries':
        """
        Build a series from an OHLCV DataFrame

        Args:
            data: DataFrame with a DatetimeIndex or a 'timestamp' column
            symbol: Trading symbol
            timeframe: Bar interval label

        Returns:
            Validated CandleSeries
        """
        missing = [col for col in REQUIRED_COLUMNS if col not in data.columns]
        if missing:
            raise DataError(f"Missing required columns: {missing}. Need: {REQUIRED_COLUMNS}")

        if 'timestamp' in data.columns:
            timestamps = data['timestamp']
        else:
            timestamps = data.index

        values = data[REQUIRED_COLUMNS].to_numpy(dtype=float)
        records = [
            (ts, row[0], row[1], row[2], row[3], row[4])
            for ts, row in zip(timestamps, values)
        ]
        return cls.from_records(records, symbol=symbol, timeframe=timeframe)

    def validate(self) -> None:
        """Raise DataError for structurally invalid data"""
        previous = None
        for i, candle in enumerate(self._candles):
            prices = np.array([candle.open, candle.high, candle.low, candle.close, candle.volume], dtype=float)
            if not np.isfinite(prices).all():
                raise DataError(f"Non-finite value in candle {i} at {candle.timestamp}")
            if candle.high < max(candle.open, candle.close) or candle.low > min(candle.open, candle.close):
                raise DataError(
                    f"Invalid OHLC bar {i} at {candle.timestamp}: "
                    f"open={candle.open} high={candle.high} low={candle.low} close={candle.close}"
                )
            if candle.volume < 0:
                raise DataError(f"Negative volume in candle {i} at {candle.timestamp}")
            if previous is not None and candle.timestamp <= previous.timestamp:
                raise DataError(
                    f"Timestamps must be strictly increasing: candle {i} at {candle.timestamp} "
                    f"follows {previous.timestamp}"
                )
            previous = candle

    def slice(self, start: Optional[TimestampLike] = None,
              end: Optional[TimestampLike] = None) -> 'CandleSeries':
        """Candles with start <= timestamp <= end"""
        start_ts = to_utc_timestamp(start) if start is not None else None
        end_ts = to_utc_timestamp(end) if end is not None else None
        selected = [
            c for c in self._candles
            if (start_ts is None or c.timestamp >= start_ts) and (end_ts is None or c.timestamp <= end_ts)
        ]
        return CandleSeries(selected, symbol=self.symbol, timeframe=self.timeframe)

    def to_dataframe(self) -> pd.DataFrame:
        """OHLCV DataFrame indexed by timestamp"""
        if not self._candles:
            return pd.DataFrame(columns=REQUIRED_COLUMNS, index=pd.DatetimeIndex([], name='timestamp', tz='UTC'))
        df = pd.DataFrame(
            [c[1:] for c in self._candles],
            columns=REQUIRED_COLUMNS,
            index=pd.DatetimeIndex([c.timestamp for c in self._candles], name='timestamp'),
        )
        return df

    def closes(self) -> np.ndarray:
        return np.array([c.close for c in self._candles], dtype=float)

    @property
    def first_timestamp(self):
        return self._candles[0].timestamp if self._candles else None

    @property
    def last_timestamp(self):
        return self._candles[-1].timestamp if self._candles else None

    def __getitem__(self, index):
        if isinstance(index, slice):
            return CandleSeries(self._candles[index], symbol=self.symbol, timeframe=self.timeframe)
        return self._candles[index]

    def __len__(self) -> int:
        return len(self._candles)

    def __iter__(self) -> Iterator[Candle]:
        return iter(self._candles)

    def __repr__(self) -> str:
        return (f"CandleSeries(symbol={self.symbol!r}, timeframe={self.timeframe!r}, "
                f"candles={len(self._candles)}, first={self.first_timestamp}, last={self.last_timestamp})")


def ensure_series(candles: Union['CandleSeries', pd.DataFrame, Iterable[Any]],
                  symbol: str = 'default', timeframe: str = '') -> CandleSeries:
    """Coerce the accepted candle inputs into a validated CandleSeries"""
    if isinstance(candles, CandleSeries):
        return candles
    if isinstance(candles, pd.DataFrame):
        return CandleSeries.from_dataframe(candles, symbol=symbol, timeframe=timeframe)
    return CandleSeries.from_records(candles, symbol=symbol, timeframe=timeframe)


def _normalise(candle: Candle) -> Candle:
    return Candle(
        timestamp=to_utc_timestamp(candle.timestamp),
        open=float(candle.open),
        high=float(candle.high),
        low=float(candle.low),
        close=float(candle.close),
        volume=float(candle.volume),
    )


def make_candles(closes: List[float], start: TimestampLike = '2024-01-01',
                 freq: str = '1h', spread: float = 0.0) -> List[Candle]:
    """
    Build flat candles from close prices

    Each candle has open = close and high/low = close -/+ spread. Handy for
    scenario tests and examples.
    """
    timestamps = pd.date_range(start=to_utc_timestamp(start), periods=len(closes), freq=freq)
    return [
        Candle(ts, float(c), float(c) + spread, float(c) - spread, float(c), 0.0)
        for ts, c in zip(timestamps, closes)
    ]
