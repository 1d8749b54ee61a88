import io
import os
from typing import Any, Dict, List, Optional

import pandas as pd

from installment_recon.schemas.transaction_import import ImportErrorItem

ERROR_COLUMN = "سبب الخطأ"


def read_spreadsheet(content: bytes, filename: str, sheet_name: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Read a CSV or XLSX upload into column-keyed rows, header row consumed.

    `sheet_name` picks the workbook sheet (first sheet when omitted) and is
    ignored for CSV. An unknown sheet raises ValueError naming the sheets.
    """
    ext = os.path.splitext(filename)[1].lower()
    buffer = io.BytesIO(content)

    if ext == ".csv":
        frame = pd.read_csv(buffer, dtype=object, keep_default_na=False, encoding="utf-8-sig")
    else:
        with pd.ExcelFile(buffer, engine="openpyxl") as workbook:
            if sheet_name and sheet_name not in workbook.sheet_names:
                raise ValueError(
                    "Worksheet '%s' not found; available sheets: %s" % (sheet_name, ", ".join(workbook.sheet_names))
                )
            frame = pd.read_excel(workbook, sheet_name=sheet_name or 0, dtype=object)

    frame.columns = [str(column).strip() for column in frame.columns]
    frame = frame.astype(object).where(pd.notna(frame), None)
    return frame.to_dict(orient="records")


def export_errors_csv(errors: List[ImportErrorItem]) -> str:
    """
    Serialize import errors for correction and resubmission: every original
    column in first-seen order, then the error message column.
    """
    columns: List[str] = []
    records = []
    for error in errors:
        for column in error.original_data:
            if column not in columns and column != ERROR_COLUMN:
                columns.append(column)
        record = dict(error.original_data)
        record[ERROR_COLUMN] = error.message
        records.append(record)
    columns.append(ERROR_COLUMN)

    frame = pd.DataFrame(records, columns=columns)
    # BOM so spreadsheet apps pick up the Arabic headers as UTF-8
    return "\ufeff" + frame.to_csv(index=False)
