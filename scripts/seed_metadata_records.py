import asyncio
import os
import sys
from datetime import date

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv()

from metadata_portal.db import (
    AsyncSessionLocal,
    DatasetType,
    FrameworkType,
    MetadataRecord,
    MetadataStatus,
    Organization,
    create_tables,
)

ORGANIZATIONS = [
    ("Office of the Surveyor-General", "National mapping agency"),
    ("National Bureau of Statistics", "Census and survey data"),
    ("Ministry of Environment", None),
]

# (title, data type, framework type, status, keywords, year, (n, s, e, w))
RECORDS = [
    ("National Administrative Boundaries", DatasetType.VECTOR, FrameworkType.ADMINISTRATIVE,
     MetadataStatus.PUBLISHED, ["boundaries", "administrative", "states"], 2020, (14.0, 4.0, 15.0, 2.5)),
    ("Digital Elevation Model 30m", DatasetType.RASTER, FrameworkType.FUNDAMENTAL,
     MetadataStatus.PUBLISHED, ["elevation", "terrain", "dem"], 2019, (14.0, 4.0, 15.0, 2.5)),
    ("Land Cover 2021", DatasetType.RASTER, FrameworkType.THEMATIC,
     MetadataStatus.PUBLISHED, ["land cover", "vegetation", "remote sensing"], 2021, (14.0, 4.0, 15.0, 2.5)),
    ("Population Census Enumeration Areas", DatasetType.VECTOR, FrameworkType.THEMATIC,
     MetadataStatus.PUBLISHED, ["population", "census", "boundaries"], 2018, (13.5, 4.2, 14.7, 2.7)),
    ("Road Network", DatasetType.VECTOR, FrameworkType.FUNDAMENTAL,
     MetadataStatus.PUBLISHED, ["transport", "roads"], 2022, None),
    ("Flood Risk Zones (draft)", DatasetType.VECTOR, FrameworkType.SPECIAL_INTEREST,
     MetadataStatus.DRAFT, ["flood", "hazard"], 2023, (9.0, 6.0, 9.5, 5.0)),
    ("Water Quality Monitoring Stations", DatasetType.TABLE, FrameworkType.THEMATIC,
     MetadataStatus.PENDING_VALIDATION, ["water", "monitoring"], 2022, None),
]


async def main():
    print("Creating tables...")
    await create_tables()

    async with AsyncSessionLocal() as session:
        orgs = [Organization(name=name, description=desc) for name, desc in ORGANIZATIONS]
        session.add_all(orgs)
        await session.flush()

        for i, (title, data_type, framework, status, keywords, year, bbox) in enumerate(RECORDS):
            record = MetadataRecord(
                title=title,
                abstract=f"{title}. Seeded sample record.",
                data_type=data_type,
                framework_type=framework,
                status=status,
                keywords=keywords,
                production_date=date(year, 1, 1),
                organization_id=orgs[i % len(orgs)].id,
                creator_user_id="seed-script",
            )
            if bbox is not None:
                (record.bounding_box_north, record.bounding_box_south,
                 record.bounding_box_east, record.bounding_box_west) = bbox
            session.add(record)

        await session.commit()

    print(f"Seeded {len(ORGANIZATIONS)} organizations and {len(RECORDS)} records.")
    # Facets are cached per process; a running server picks these up once
    # its facet cache entry expires or a record write invalidates it.


if __name__ == "__main__":
    asyncio.run(main())
