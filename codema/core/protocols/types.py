from enum import StrEnum


class ProtocolType(StrEnum):
    """Recognized protocol type codes."""

    PROC = "PROC"  # Environmental processes (licensing, inspection)
    RES = "RES"  # Council resolutions
    OUV = "OUV"  # Ombudsman complaints
    REU = "REU"  # Meetings
    ATA = "ATA"  # Meeting minutes
    CONV = "CONV"  # Convocations
    DOC = "DOC"  # General documents
    PROJ = "PROJ"  # Projects
    REL = "REL"  # Reports
    NOT = "NOT"  # Notifications and notices


PROTOCOL_TYPE_INFO: dict[ProtocolType, dict[str, str]] = {
    ProtocolType.PROC: {
        "name": "Processo Ambiental",
        "description": "Processos de licenciamento e fiscalização ambiental",
    },
    ProtocolType.RES: {
        "name": "Resolução",
        "description": "Resoluções aprovadas pelo conselho",
    },
    ProtocolType.OUV: {
        "name": "Ouvidoria",
        "description": "Denúncias e reclamações da ouvidoria",
    },
    ProtocolType.REU: {
        "name": "Reunião",
        "description": "Reuniões ordinárias e extraordinárias",
    },
    ProtocolType.ATA: {
        "name": "Ata",
        "description": "Atas de reuniões do conselho",
    },
    ProtocolType.CONV: {
        "name": "Convocação",
        "description": "Convocações para reuniões",
    },
    ProtocolType.DOC: {
        "name": "Documento",
        "description": "Documentos gerais",
    },
    ProtocolType.PROJ: {
        "name": "Projeto",
        "description": "Projetos ambientais",
    },
    ProtocolType.REL: {
        "name": "Relatório",
        "description": "Relatórios diversos",
    },
    ProtocolType.NOT: {
        "name": "Notificação",
        "description": "Notificações e comunicados",
    },
}


def is_recognized_type(code: str) -> bool:
    return code in ProtocolType.__members__
