import numpy as np
import pandas as pd
from typing import Iterator, Optional, Sequence, Tuple, Union
import logging

from .errors import DimensionMismatch

# Batch size policies
ONE_SAMPLE = 1
FULL_BATCH = None

BatchSize = Optional[int]


class BatchIterator:
    """
    Iterates over (inputs, labels) batches of one split.

    Batches are transposed to the network layout (features, batch). Every call
    to iter() starts again from the first batch.

    Attributes:
        num_batches: Number of batches per pass (the last one may be short).
        batch_size: Samples per full batch.
    """

    def __init__(self, records: np.ndarray, labels: np.ndarray, batch_size: BatchSize,
                 shuffle: bool = False, rng: Optional[np.random.Generator] = None):
        self.records = records
        self.labels = labels
        self.num_samples = records.shape[0]
        self.batch_size = self.num_samples if batch_size is None else min(batch_size, max(self.num_samples, 1))
        self.num_batches = -(-self.num_samples // self.batch_size) if self.num_samples else 0
        self.shuffle = shuffle
        self.rng = rng if rng is not None else np.random.default_rng()

    def __len__(self):
        return self.num_batches

    def __iter__(self) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        order = np.arange(self.num_samples)
        if self.shuffle:
            order = self.rng.permutation(self.num_samples)
        for batch_idx in range(self.num_batches):
            start = batch_idx * self.batch_size
            idx = order[start:start + self.batch_size]
            yield self.records[idx].T, self.labels[idx].T


class Dataset:
    """
    Holds row-per-sample records and labels, split into a train and a test part.

    Args:
        records: Input features, shape (num_samples, input_dim).
        labels: Targets, shape (num_samples, output_dim). A 1D array is one target per sample.
        train_fraction: Fraction of samples (taken from the front) used for training, in (0, 1].
        batch_size: A positive sample count, ONE_SAMPLE, or FULL_BATCH (None) for the whole split.
        shuffle: Shuffle the training split on every pass.
        rng: Seed or Generator for shuffling.
    """

    def __init__(
        self,
        records: np.ndarray,
        labels: np.ndarray,
        train_fraction: float = 1.0,
        batch_size: BatchSize = ONE_SAMPLE,
        shuffle: bool = False,
        rng: Union[None, int, np.random.Generator] = None,
    ):
        records = np.asarray(records, dtype=float)
        labels = np.asarray(labels, dtype=float)
        if records.ndim == 1:
            records = records.reshape(-1, 1)
        if labels.ndim == 1:
            labels = labels.reshape(-1, 1)
        if records.shape[0] != labels.shape[0]:
            raise DimensionMismatch((records.shape[0],), (labels.shape[0],), operation="dataset labels")
        if not 0.0 < train_fraction <= 1.0:
            raise ValueError("train_fraction must be in (0, 1]")
        if batch_size is not None and batch_size <= 0:
            raise ValueError(f"Batch size must be positive, got {batch_size}")

        self.records = records
        self.labels = labels
        self.train_fraction = train_fraction
        self.batch_size = batch_size
        self.shuffle = shuffle
        self.rng = np.random.default_rng(rng)
        self.split_index = int(round(records.shape[0] * train_fraction))

        logging.info(f"Dataset: {records.shape[0]} samples, {self.split_index} for training, "
                     f"input_dim={self.input_dim}, output_dim={self.output_dim}")

    @classmethod
    def from_csv(
        cls,
        path: str,
        label_columns: Union[str, Sequence[str]],
        feature_columns: Optional[Sequence[str]] = None,
        **kwargs,
    ) -> 'Dataset':
        """
        Loads a dataset from a CSV file with a header row.

        Args:
            path: CSV file path.
            label_columns: Column name(s) holding the targets.
            feature_columns: Column names used as inputs. Defaults to every other column.
            **kwargs: Passed to the Dataset constructor.
        """
        frame = pd.read_csv(path)
        if isinstance(label_columns, str):
            label_columns = [label_columns]
        missing = [c for c in label_columns if c not in frame.columns]
        if missing:
            raise ValueError(f"Label columns {missing} not found in {path}")
        if feature_columns is None:
            feature_columns = [c for c in frame.columns if c not in label_columns]
        logging.info(f"Loaded {len(frame)} rows from {path}")
        return cls(frame[list(feature_columns)].to_numpy(dtype=float),
                   frame[list(label_columns)].to_numpy(dtype=float), **kwargs)

    @property
    def input_dim(self) -> int:
        return self.records.shape[1]

    @property
    def output_dim(self) -> int:
        return self.labels.shape[1]

    def normalize(self) -> 'Dataset':
        """Returns a copy with z-scored features (statistics of the training split)."""
        train = self.records[:self.split_index]
        mean = train.mean(axis=0)
        std = train.std(axis=0)
        records = (self.records - mean) / (std + 1e-8)
        return Dataset(records, self.labels, self.train_fraction, self.batch_size,
                       self.shuffle, self.rng)

    def iter_train(self) -> BatchIterator:
        return BatchIterator(self.records[:self.split_index], self.labels[:self.split_index],
                             self.batch_size, self.shuffle, self.rng)

    def iter_test(self) -> BatchIterator:
        return BatchIterator(self.records[self.split_index:], self.labels[self.split_index:],
                             self.batch_size)
