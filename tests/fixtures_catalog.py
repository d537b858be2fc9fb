"""Sample catalog data shared by reference tests."""

from refengine.core.reference_codec import encode

GRAPPLE_TOKEN = encode("Regra", "r1", "Agarrar")

SAMPLE_RULES = [
    {
        "_id": "r1",
        "name": "Agarrar",
        "description": "<p>Uma criatura agarrada tem deslocamento 0.</p>",
        "source": "LDJ pág. 195",
        "status": "active",
    },
    {
        "_id": "r2",
        "name": "Ataque de Oportunidade",
        "description": f"<p>Ocorre quando um alvo sai do alcance. Veja {GRAPPLE_TOKEN}.</p>",
        "source": "LDJ pág. 195",
        "status": "active",
    },
    {
        "_id": "r3",
        "name": "Regra Antiga",
        "description": "<p>Substituída. Ver @Agarrar.</p>",
        "source": "Beta",
        "status": "inactive",
    },
]

SAMPLE_TRAITS = [
    {
        "_id": "a1",
        "name": "Fúria",
        "description": "<p>Vantagem em testes de Força.</p>",
        "source": "LDJ",
        "status": "active",
    },
    {
        "_id": "a2",
        "name": "Ataque Furtivo",
        "description": "<p>Dano extra uma vez por turno. Combina com @Fúria.</p>",
        "source": "LDJ",
        "status": "active",
    },
]

# Feat search returns label/metadata instead of name/level
SAMPLE_FEATS = [
    {
        "id": "f1",
        "_id": "f1",
        "label": "Força",
        "name": "Força",
        "metadata": {"level": 1, "description": "<p>+1 em Força.</p>"},
        "status": "active",
    },
    {
        "id": "f2",
        "_id": "f2",
        "label": "Iniciado em Magia",
        "name": "Iniciado em Magia",
        "level": 4,
        "prerequisites": ["<p>Nível 4</p>"],
        "description": "<p>Aprende dois truques.</p>",
        "status": "active",
    },
]

SAMPLE_SPELLS = [
    {
        "id": "s1",
        "_id": "s1",
        "label": "Fogo",
        "name": "Fogo",
        "circle": 0,
        "school": "Evocação",
        "saveAttribute": "Destreza",
        "baseDice": {"quantidade": 1, "tipo": "d10"},
        "description": "<p>Uma chama atinge o alvo.</p>",
        "source": "LDJ",
        "status": "active",
    },
    {
        "id": "s2",
        "_id": "s2",
        "label": "Bola de Fogo",
        "name": "Bola de Fogo",
        "circle": 3,
        "school": "Evocação",
        "baseDice": {"quantidade": 8, "tipo": "d6"},
        "extraDicePerLevel": {"quantidade": 1, "tipo": "d6"},
        "description": "<p>Explosão de fogo.</p>",
        "source": "LDJ",
        "status": "active",
    },
    {
        "id": "s3",
        "_id": "s3",
        "label": "Mísseis Mágicos",
        "name": "Mísseis Mágicos",
        "circle": 1,
        "school": "Evocação",
        "description": "<p>Três dardos de energia.</p>",
        "source": "LDJ",
        "status": "active",
    },
]
