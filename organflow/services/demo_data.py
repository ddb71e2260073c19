"""Demo organs for the dashboard, driven through real lifecycle transitions."""
import logging

from organflow.services.lifecycle_manager import OrganLifecycleManager

logger = logging.getLogger(__name__)

# (organ type, blood type, donor, hospital, target state)
DEMO_ORGANS = [
    ("Heart", "O+", "D-2847", "Nairobi General Hospital", "in-transit"),
    ("Kidney", "A+", "D-3921", "Kenyatta Hospital", "transplanted"),
    ("Liver", "B-", "D-4156", "Aga Khan Hospital", "available"),
    ("Lung", "AB+", "D-5283", "Mater Hospital", "requested"),
    ("Cornea", "O-", "D-6794", "Coast General Hospital", "in-transit"),
    ("Kidney", "A-", "D-7821", "Nakuru Level 5 Hospital", "transplanted"),
]

DEMO_REQUESTING_HOSPITAL = "Kenyatta Hospital"


def seed_demo_data(manager: OrganLifecycleManager) -> int:
    """Register the demo organs and move each into its target state. Returns the number registered."""
    for index, (organ_type, blood_type, donor, hospital, target) in enumerate(DEMO_ORGANS, start=1):
        organ = manager.register(
            donor=donor,
            organ_type=organ_type,
            blood_type=blood_type,
            hospital=hospital,
            token_uri=f"ipfs://mock{index}",
        )
        if target in ("in-transit", "transplanted"):
            manager.transfer(organ.id, hospital)
        if target == "transplanted":
            manager.transplant(
                organ.id,
                {
                    "name": f"Recipient {donor}",
                    "blood_type": blood_type,
                    "hospital": hospital,
                    "surgeon": "Dr. Wanjiru",
                    "notes": "Demo transplant",
                },
            )
        elif target == "requested":
            manager.create_request(organ.id, DEMO_REQUESTING_HOSPITAL)

    logger.info(f"Seeded {len(DEMO_ORGANS)} demo organs")
    return len(DEMO_ORGANS)
