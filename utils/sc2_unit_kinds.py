#!/usr/bin/env python3
"""
SC2 build order step classification.
Maps a replay build order entry to one of the step kinds stored in the cache.
"""

WORKER = "Worker"
BUILDING = "Building"
UPGRADE = "Upgrade"
UNIT = "Unit"

WORKERS = {'SCV', 'Probe', 'Drone', 'MULE'}

BUILDINGS = {
    # Terran
    'CommandCenter', 'OrbitalCommand', 'PlanetaryFortress', 'SupplyDepot', 'Refinery', 'Barracks',
    'EngineeringBay', 'Bunker', 'MissileTurret', 'SensorTower', 'Factory', 'GhostAcademy', 'Armory',
    'Starport', 'FusionCore', 'BarracksReactor', 'BarracksTechLab', 'FactoryReactor', 'FactoryTechLab',
    'StarportReactor', 'StarportTechLab', 'Reactor', 'TechLab',
    # Protoss
    'Nexus', 'Pylon', 'Assimilator', 'Gateway', 'WarpGate', 'Forge', 'CyberneticsCore', 'PhotonCannon',
    'ShieldBattery', 'TwilightCouncil', 'RoboticsFacility', 'Stargate', 'TemplarArchives', 'DarkShrine',
    'RoboticsBay', 'FleetBeacon',
    # Zerg
    'Hatchery', 'Lair', 'Hive', 'Extractor', 'SpawningPool', 'EvolutionChamber', 'RoachWarren',
    'BanelingNest', 'SpineCrawler', 'SporeCrawler', 'HydraliskDen', 'LurkerDenMP', 'LurkerDen',
    'InfestationPit', 'Spire', 'GreaterSpire', 'NydusNetwork', 'UltraliskCavern', 'NydusCanal',
}

# critical structures whose timing defines an opening
KEY_BUILDINGS = (
    'SpawningPool', 'Barracks', 'Gateway', 'Forge', 'Factory',
    'RoachWarren', 'BanelingNest', 'Spire', 'NydusNetwork',
    'TwilightCouncil', 'RoboticsFacility', 'Stargate',
    'FusionCore', 'Armory', 'Starport', 'NuclearFacility',
)

EXPANSIONS = ('Hatchery', 'CommandCenter', 'Nexus')

UPGRADE_MARKERS = ('Research', 'Upgrade', 'Level', 'Weapons', 'Armor', 'Shields', 'Plating',
                   'Carapace', 'Attacks', 'Missile', 'Melee', 'Stimpack', 'ShieldWall', 'Charge',
                   'Blink', 'WarpGate', 'GlialReconstitution', 'TunnelingClaws', 'Burrow',
                   'overlordspeed', 'zerglingmovementspeed', 'zerglingattackspeed')


def classify_step(step):
    """Kind of a build order entry: Worker, Building, Upgrade or Unit"""
    name = step.get('name', '') or ''
    if step.get('is_worker') or name in WORKERS:
        return WORKER
    if name in BUILDINGS:
        return BUILDING
    if any(marker.lower() in name.lower() for marker in UPGRADE_MARKERS):
        return UPGRADE
    return UNIT
