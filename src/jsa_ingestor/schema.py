"""SQLAlchemy metadata for the JCMT archive header tables.

Only used to bootstrap development databases and tests; the ingestor itself
reads the live column set through :mod:`jsa_ingestor.catalog`.
"""

from __future__ import annotations

from sqlalchemy import (Column, DateTime, Float, Integer, MetaData,
                        PrimaryKeyConstraint, SmallInteger, String, Table,
                        Text, func)

metadata = MetaData()


def _range(name_start: str, name_end: str, col_type) -> list[Column]:
    return [Column(name_start, col_type), Column(name_end, col_type)]


common = Table(
    "COMMON",
    metadata,
    Column("obsid", String(48), primary_key=True),
    Column("project", String(32)),
    Column("release_date", DateTime),
    Column("last_modified", DateTime, server_default=func.now(), onupdate=func.now()),
    Column("obsnum", Integer),
    Column("nsubscan", Integer),
    Column("obs_type", String(32)),
    Column("utdate", Integer),
    *_range("date_obs", "date_end", DateTime),
    Column("instap", String(8)),
    Column("instap_x", Float),
    Column("instap_y", Float),
    *_range("amstart", "amend", Float),
    *_range("azstart", "azend", Float),
    *_range("elstart", "elend", Float),
    *_range("hststart", "hstend", String(24)),
    *_range("lststart", "lstend", Float),
    Column("int_time", Float),
    Column("msbid", String(40)),
    Column("msbtid", String(32)),
    Column("object", String(70)),
    Column("sam_mode", String(8)),
    Column("sw_mode", String(8)),
    Column("scan_pat", String(28)),
    Column("standard", SmallInteger),
    Column("simulate", SmallInteger),
    Column("survey", String(10)),
    *_range("seeingst", "seeingen", Float),
    *_range("seedatst", "seedaten", DateTime),
    *_range("tau225st", "tau225en", Float),
    *_range("taudatst", "taudaten", DateTime),
    *_range("wvmtaust", "wvmtauen", Float),
    *_range("wvmdatst", "wvmdaten", DateTime),
    *_range("atstart", "atend", Float),
    *_range("humstart", "humend", Float),
    *_range("bpstart", "bpend", Float),
    *_range("wnddirst", "wnddiren", Float),
    *_range("wndspdst", "wndspden", Float),
    *_range("frlegtst", "frlegten", Float),
    *_range("bklegtst", "bklegten", Float),
    Column("obsra", Float),
    Column("obsdec", Float),
    *[
        Column(f"obs{axis}{corner}", Float)
        for corner in ("tl", "tr", "bl", "br")
        for axis in ("ra", "dec")
    ],
    Column("tracksys", String(16)),
    Column("inbeam", String(64)),
    Column("backend", String(16)),
    Column("instrume", String(8)),
    Column("telescop", String(8)),
)

acsis = Table(
    "ACSIS",
    metadata,
    Column("obsid_subsysnr", String(50), primary_key=True),
    Column("obsid", String(48), nullable=False),
    Column("subsysnr", Integer),
    Column("max_subscan", Integer),
    Column("restfreq", Float),
    Column("zsource", Float),
    Column("freq_sig_lower", Float),
    Column("freq_sig_upper", Float),
    Column("freq_img_lower", Float),
    Column("freq_img_upper", Float),
    Column("molecule", String(70)),
    Column("transiti", String(70)),
    Column("bwmode", String(16)),
    Column("iffreq", Float),
    Column("ifchansp", Float),
    Column("nchnsubs", Integer),
    Column("obs_sb", String(8)),
    Column("sb_mode", String(8)),
    Column("doppler", String(16)),
    Column("ssysobs", String(16)),
    Column("medtsys", Float),
)

scuba2 = Table(
    "SCUBA2",
    metadata,
    Column("obsid_subsysnr", String(50), primary_key=True),
    Column("obsid", String(48), nullable=False),
    Column("filter", String(10)),
    Column("wavelen", Float),
    Column("bandwid", Float),
    Column("shutter", Float),
    Column("seq_type", String(16)),
    Column("max_subscan", Integer),
)

files = Table(
    "FILES",
    metadata,
    Column("file_id", String(70), nullable=False),
    Column("obsid", String(48), nullable=False),
    Column("subsysnr", Integer),
    Column("nsubscan", Integer),
    Column("obsid_subsysnr", String(50), nullable=False),
    PrimaryKeyConstraint("obsid_subsysnr", "file_id", name="pk_files"),
)

transfer = Table(
    "transfer",
    metadata,
    Column("file_id", String(70), primary_key=True),
    Column("status", String(16), nullable=False),
    Column("comment", Text),
    Column("created", DateTime, server_default=func.now()),
    Column("modified", DateTime, server_default=func.now(), onupdate=func.now()),
)


def create_schema(bind) -> None:
    """Create any missing archive tables on ``bind``."""
    metadata.create_all(bind)
