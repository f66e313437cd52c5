"""
Loaders for expression matrices, sample annotations and gene sets.

Expected inputs:
    Expression table (CSV or TSV, delimiter sniffed):
    ```
    gene,NF_1,NF_2,DCM_1,DCM_2
    TTN,10.2,11.0,14.3,13.9
    MYH7,8.1,7.9,9.5,9.8
    ```
    - First column: gene ids (header may be empty)
    - Remaining columns: one numeric column per sample

    Sample annotation (CSV or TSV):
    ```
    sample,condition
    NF_1,NF
    DCM_1,DCM
    ```
    - First column: sample ids; other columns are annotations

    Gene set:
    - One gene id per line (blank lines and '#' comments ignored), or
    - A delimited table whose first column holds the gene ids (with header)

Transient read failures (``OSError`` other than missing files or
permissions) are retried a bounded number of times with a warning;
malformed content raises InvalidInput immediately and is never retried.

Examples:
    >>> from pathlib import Path
    >>> from switchminer.io.loaders import load_expression, load_gene_set
    >>>
    >>> matrix = load_expression(Path("expression.csv"), annotation=Path("samples.csv"))
    >>> genes = load_gene_set(Path("de_genes.txt"))
    >>> matrix.conditions('condition')
    ['DCM', 'NF']
"""

from __future__ import annotations

import csv
import logging
import time
import warnings
from pathlib import Path
from typing import Callable, Optional, TypeVar

import numpy as np
import pandas as pd

from switchminer.core.errors import InvalidInput
from switchminer.core.expression import ExpressionMatrix, GeneSet

logger = logging.getLogger(__name__)

__all__ = [
    'DEFAULT_RETRIES',
    'sniff_delimiter',
    'load_expression',
    'load_sample_annotation',
    'load_gene_set',
]

DEFAULT_RETRIES = 2
RETRY_DELAY = 0.5

T = TypeVar('T')


def _with_retries(
    read: Callable[[], T], path: Path, retries: int = DEFAULT_RETRIES, delay: Optional[float] = None
) -> T:
    """Call ``read``, retrying transient OSErrors up to ``retries`` times."""
    if delay is None:
        delay = RETRY_DELAY
    for attempt in range(retries + 1):
        try:
            return read()
        except (FileNotFoundError, IsADirectoryError, PermissionError):
            raise
        except OSError as e:
            if attempt >= retries:
                raise
            logger.warning(
                f"Reading {path} failed on attempt {attempt + 1}/{retries + 1}: {e}; retrying"
            )
            time.sleep(delay * (attempt + 1))
    raise AssertionError("unreachable")  # pragma: no cover


def _check_file(path: Path) -> Path:
    if not isinstance(path, Path):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if not path.is_file():
        raise InvalidInput(f"Path is not a file: {path}", stage="input")
    return path


def sniff_delimiter(path: Path, sample_size: int = 8192) -> str:
    """
    Auto-detect the delimiter of a table.

    Uses csv.Sniffer, falling back to counting candidates in the header.

    Raises:
        InvalidInput: If no delimiter can be found
    """
    with open(path, 'r', encoding='utf-8', errors='ignore') as f:
        sample = f.read(sample_size)

    try:
        return csv.Sniffer().sniff(sample, delimiters='\t,;').delimiter
    except csv.Error:
        pass

    first_line = sample.split('\n')[0]
    counts = {'\t': first_line.count('\t'), ',': first_line.count(','), ';': first_line.count(';')}
    if max(counts.values()) == 0:
        raise InvalidInput(
            f"Could not detect delimiter in {path}; pass sep explicitly", stage="input"
        )
    return max(counts, key=counts.get)


def _read_table(path: Path, sep: Optional[str], retries: int) -> pd.DataFrame:
    def read() -> pd.DataFrame:
        delimiter = sep if sep is not None else sniff_delimiter(path)
        return pd.read_csv(path, sep=delimiter, index_col=0)

    try:
        return _with_retries(read, path, retries)
    except pd.errors.EmptyDataError as e:
        raise InvalidInput(f"File is empty: {path}", stage="input") from e
    except pd.errors.ParserError as e:
        raise InvalidInput(f"Failed to parse {path}: {e}", stage="input") from e


def load_sample_annotation(
    path: Path, sep: Optional[str] = None, retries: int = DEFAULT_RETRIES
) -> pd.DataFrame:
    """
    Load a sample annotation table indexed by sample id.

    Raises:
        FileNotFoundError: If path does not exist
        InvalidInput: If the table is empty or sample ids repeat
    """
    path = _check_file(path)
    df = _read_table(path, sep, retries)
    if df.shape[1] == 0:
        raise InvalidInput(f"Annotation has no columns besides sample ids: {path}", stage="input")
    df.index = df.index.astype(str)
    df.index.name = 'sample_id'
    if df.index.has_duplicates:
        raise InvalidInput(
            f"Annotation lists samples more than once: {path}",
            stage="input",
            context={"duplicates": sorted(set(df.index[df.index.duplicated()]))[:5]},
        )
    logger.info(f"Loaded annotation for {len(df)} samples ({list(df.columns)}) from {path}")
    return df


def load_expression(
    path: Path,
    annotation: Optional[Path | pd.DataFrame] = None,
    sep: Optional[str] = None,
    retries: int = DEFAULT_RETRIES,
) -> ExpressionMatrix:
    """
    Load a genes x samples expression table into an ExpressionMatrix.

    Args:
        path: CSV/TSV expression table, gene ids in the first column
        annotation: Sample annotation (path or DataFrame indexed by sample id)
        sep: Delimiter; sniffed when None
        retries: Retries for transient read failures

    Returns:
        ExpressionMatrix with annotation rows aligned to the table's samples

    Raises:
        FileNotFoundError: If a path does not exist
        InvalidInput: If the table is empty, non-numeric or contains
            infinite values, or samples lack annotation
    """
    path = _check_file(path)
    df = _read_table(path, sep, retries)

    if df.shape[0] == 0:
        raise InvalidInput(f"Expression table contains no genes (rows): {path}", stage="input")
    if df.shape[1] == 0:
        raise InvalidInput(f"Expression table contains no samples (columns): {path}", stage="input")

    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)

    if df.index.duplicated().any():
        n_duplicates = int(df.index.duplicated().sum())
        warnings.warn(
            f"Found {n_duplicates} duplicate gene IDs. Using first occurrence of each.",
            UserWarning,
        )
        df = df[~df.index.duplicated(keep='first')]

    if df.columns.duplicated().any():
        raise InvalidInput(
            "Expression table has duplicate sample columns",
            stage="input",
            context={"duplicates": sorted(set(df.columns[df.columns.duplicated()]))[:5]},
        )

    numeric = df.apply(pd.to_numeric, errors='coerce')
    bad = numeric.isna() & df.notna()
    if bad.to_numpy().any():
        examples = [
            f"{df.index[i]}/{df.columns[j]}: {df.iat[i, j]!r}"
            for i, j in np.argwhere(bad.to_numpy())[:5]
        ]
        raise InvalidInput(
            "Expression table contains non-numeric values",
            stage="input",
            context={"n_bad": int(bad.to_numpy().sum()), "examples": examples},
        )
    data = numeric.to_numpy(dtype=float)

    if np.isinf(data).any():
        raise InvalidInput(
            "Expression table contains infinite values",
            stage="input",
            context={"n_inf": int(np.isinf(data).sum())},
        )
    if np.isnan(data).any():
        n_nan = int(np.isnan(data).sum())
        warnings.warn(
            f"Found {n_nan:,} missing values ({100 * n_nan / data.size:.2f}% of data). "
            "Genes with missing values cannot be correlated.",
            UserWarning,
        )

    sample_ids = pd.Index(df.columns)
    if annotation is None:
        metadata = pd.DataFrame(index=sample_ids)
    else:
        if not isinstance(annotation, pd.DataFrame):
            annotation = load_sample_annotation(annotation, retries=retries)
        annotation = annotation.copy()
        annotation.index = annotation.index.astype(str)
        missing = [s for s in sample_ids if s not in annotation.index]
        if missing:
            raise InvalidInput(
                f"{len(missing)} sample(s) have no annotation",
                stage="input",
                context={"missing": missing[:5]},
            )
        metadata = annotation.loc[sample_ids]

    logger.info(f"Loaded {data.shape[0]} genes x {data.shape[1]} samples from {path}")

    return ExpressionMatrix(
        data=data,
        feature_ids=pd.Index(df.index),
        sample_ids=sample_ids,
        sample_metadata=metadata,
    )


def load_gene_set(path: Path, retries: int = DEFAULT_RETRIES) -> GeneSet:
    """
    Load a gene set: one id per line, or the first column of a table.

    Raises:
        FileNotFoundError: If path does not exist
        InvalidInput: If no gene is listed or a gene repeats
    """
    path = _check_file(path)

    def read() -> list:
        with open(path, 'r', encoding='utf-8') as f:
            return f.read().splitlines()

    lines = [
        line.strip() for line in _with_retries(read, path, retries)
        if line.strip() and not line.lstrip().startswith('#')
    ]
    if not lines:
        raise InvalidInput(f"Gene set file lists no genes: {path}", stage="input")

    if any(d in lines[0] for d in ('\t', ',', ';')):
        table = _read_table(path, None, retries)
        genes = [str(g).strip() for g in table.index if pd.notna(g)]
    else:
        genes = lines

    gene_set = GeneSet.from_iterable(genes)
    logger.info(f"Loaded gene set of {len(gene_set)} genes from {path}")
    return gene_set
