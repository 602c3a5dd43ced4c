import io
import logging
import time
from typing import Sequence

import pandas as pd
import requests

from .config import SAMPLE_CSV_NAME
from .errors import IngestionError
from .models import Dataset, Row, frame_to_rows

logger = logging.getLogger(__name__)

SAMPLE_CSV_CONTENT = """case_id,biomarkerName,gene,therapyName,diagnosis_UAHS,primary_Tumor_Organ
1,ERBB2 (Her2/Neu),ERBB2,"lapatinib, pertuzumab, trastuzumab",Mucinous adenocarcinoma,appendix
1,KRAS,KRAS,"cetuximab, panitumumab",Mucinous adenocarcinoma,appendix
1,KRAS,KRAS,"lapatinib, pertuzumab, trastuzumab",Mucinous adenocarcinoma,appendix
2,BRAF,BRAF,"cetuximab,panitumumab",Adenocarcinoma,colon
2,KRAS,KRAS,"cetuximab,panitumumab",Adenocarcinoma,colon
2,NRAS,NRAS,"cetuximab,panitumumab",Adenocarcinoma,colon
2,PIK3CA,PIK3CA,aspirin,Adenocarcinoma,colon
2,PIK3CA,PIK3CA,"cetuximab,panitumumab",Adenocarcinoma,colon
2,PTEN,PTEN,"cetuximab,panitumumab",Adenocarcinoma,colon
3,KRAS,KRAS,"cetuximab, panitumumab",Adenocarcinoma,colon
5,PD-L1 (22c3),CD274,pembrolizumab,Squamous cell carcinoma,tonsils
6,ERBB2 (Her2/Neu),ERBB2,"lapatinib, pertuzumab, trastuzumab",Adenocarcinoma,rectum
6,NRAS,NRAS,"cetuximab, panitumumab",Adenocarcinoma,rectum
7,ER,ESR1,endocrine therapy,Low-grade serous carcinoma,ovaries
7,FOLR1,FOLR1,mirvetuximab soravtansine,Low-grade serous carcinoma,ovaries
7,PD-L1 (22c3),CD274,pembrolizumab,Low-grade serous carcinoma,ovaries
8,PD-L1 (22c3),CD274,pembrolizumab,High-grade serous carcinoma,peritoneum
9,BRAF,BRAF,"binimetinib, cobimetinib, dabrafenib, encorafenib, trametinib, vemurafenib",Nodular melanoma,skin
10,PD-L1 (SP142),CD274,nivolumab,Squamous cell carcinoma,penis
10,PD-L1 (SP142),CD274,pembrolizumab,Squamous cell carcinoma,penis
11,BRAF,BRAF,"dabrafenib, encorafenib, vemurafenib",Melanoma,skin
12,AR,AR,"bicalutamide, enzalutamide",Ductal carcinoma,breast
12,BRCA1,BRCA1,"carboplatin, cisplatin",Ductal carcinoma,breast
12,BRCA1,BRCA1,"olaparib, talazoparib",Ductal carcinoma,breast
12,ER,ESR1,endocrine therapy,Ductal carcinoma,breast
12,ER/PR/Her2/Neu,ERBB2,sacituzumab govitecan,Ductal carcinoma,breast
12,ER/PR/Her2/Neu,ESR1,sacituzumab govitecan,Ductal carcinoma,breast
12,ER/PR/Her2/Neu,PGR,sacituzumab govitecan,Ductal carcinoma,breast
12,ERBB2 (Her2/Neu),ERBB2,"pertuzumab, margetuximab fam-trastuzumab deruxtecan-nxki lapatinib, neratinib, tucatinib",Ductal carcinoma,breast
12,ERBB2 (Her2/Neu),ERBB2,"trastuzumab ado-trastuzumab emtansine (T-DM1)",Ductal carcinoma,breast
12,PR,PGR,endocrine therapy,Ductal carcinoma,breast
13,Mismatch Repair Status,MLH1,"dostarlimab, pembrolizumab",Brenner tumor,ovaries
13,Mismatch Repair Status,MSH2,"dostarlimab, pembrolizumab",Brenner tumor,ovaries
13,Mismatch Repair Status,MSH6,"dostarlimab, pembrolizumab",Brenner tumor,ovaries
13,Mismatch Repair Status,PMS2,"dostarlimab, pembrolizumab",Brenner tumor,ovaries
14,ERBB2 (Her2/Neu),ERBB2,"trastuzumab + chemotherapy",Serous carcinoma,uterus
14,Mismatch Repair Status,MLH1,"pembrolizumab + lenvatinib",Serous carcinoma,uterus
14,Mismatch Repair Status,MSH2,"pembrolizumab + lenvatinib",Serous carcinoma,uterus
14,Mismatch Repair Status,MSH6,"pembrolizumab + lenvatinib",Serous carcinoma,uterus
14,Mismatch Repair Status,PMS2,"pembrolizumab + lenvatinib",Serous carcinoma,uterus
"""

ENCODINGS = ("utf-8-sig", "latin-1")


# ================== DATA LOADING ==================
def _decode(raw: bytes) -> str:
    for enc in ENCODINGS:
        try:
            return raw.decode(enc)
        except UnicodeDecodeError:
            continue
    raise IngestionError("Could not decode file")


def parse_csv(raw: bytes, name: str = "data.csv") -> Dataset:
    """Parse CSV bytes into a Dataset; header row names the fields, numbers are typed."""
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    try:
        # only an empty field is null ("NA" is a gene name); nullable dtypes keep ints with gaps as ints
        df = pd.read_csv(
            io.StringIO(_decode(raw)),
            on_bad_lines="skip",
            skip_blank_lines=True,
            keep_default_na=False,
            na_values=[""],
            dtype_backend="numpy_nullable",
        )
    except pd.errors.EmptyDataError:
        raise IngestionError("No data found in CSV") from None
    except (pd.errors.ParserError, ValueError) as e:
        raise IngestionError(f"Error parsing CSV: {e}") from e
    if df.empty or len(df.columns) == 0:
        raise IngestionError("No data found in CSV")

    df.columns = [str(c).strip() for c in df.columns]
    dataset = Dataset.from_rows(name, frame_to_rows(df))
    logger.info("Loaded %s: %d rows x %d cols", name, len(dataset), len(dataset.columns))
    return dataset


def load_sample_dataset(url: str = "") -> Dataset:
    """Sample cancer research data; pulled from `url` when set, else the embedded copy."""
    if url:
        try:
            r = requests.get(url, timeout=10)
            r.raise_for_status()
            return parse_csv(r.content, SAMPLE_CSV_NAME)
        except (requests.RequestException, IngestionError) as e:
            logger.warning("Could not load sample CSV from %s (%s); using embedded copy", url, e)
    return parse_csv(SAMPLE_CSV_CONTENT.encode("utf-8"), SAMPLE_CSV_NAME)


# ================== EXPORT ==================
def to_csv_text(rows: Sequence[Row]) -> str:
    """Header from the first row's keys, every row in that column order."""
    if not rows:
        return ""
    columns = list(rows[0].keys())
    df = pd.DataFrame([[r.get(c) for c in columns] for r in rows], columns=columns, dtype=object)
    return df.to_csv(index=False, lineterminator="\n")


def export_filename() -> str:
    return f"query_results_{int(time.time() * 1000)}.csv"
