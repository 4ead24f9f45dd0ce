"""
Option lists offered by the lesson plan form.
"""

SUBJECTS = [
    "Matemática",
    "Português",
    "História",
    "Geografia",
    "Ciências",
    "Biologia",
    "Física",
    "Química",
    "Artes",
    "Educação Física",
    "Inglês",
    "Outro",
]

GRADES = [
    "Educação Infantil (Creche)",
    "Educação Infantil (Pré-escola)",
    "1º Ano - Fundamental I",
    "2º Ano - Fundamental I",
    "3º Ano - Fundamental I",
    "4º Ano - Fundamental I",
    "5º Ano - Fundamental I",
    "6º Ano - Fundamental II",
    "7º Ano - Fundamental II",
    "8º Ano - Fundamental II",
    "9º Ano - Fundamental II",
    "1ª Série - Ensino Médio",
    "2ª Série - Ensino Médio",
    "3ª Série - Ensino Médio",
    "EJA - Fundamental",
    "EJA - Médio",
    "Ensino Superior",
    "Ensino Técnico / Profissionalizante",
]

PLANNING_TYPES = ["Individual", "Semanal", "Mensal", "Bimestral"]

DURATIONS = ["50 minutos", "100 minutos", "1 semana", "1 mês", "1 bimestre"]

TEST_KINDS = {
    "objective": "Prova objetiva",
    "subjective": "Prova subjetiva",
}
