# -*- coding: utf-8 -*-
"""
Prompt templates for the inference service.
"""

from __future__ import annotations

from chatledger.ledger.types import UserContext

ACCOUNT_TYPE_LABELS = {
    "checking": "conta corrente",
    "savings": "poupança",
    "credit_card": "cartão de crédito",
    "cash": "dinheiro",
    "investment": "investimento",
    "benefit": "benefício",
}

AUDIO_NOT_UNDERSTOOD = "AUDIO_NAO_COMPREENDIDO"

TRANSCRIPTION_PROMPT = f"""Transcreva o áudio em português brasileiro.
Retorne APENAS o texto transcrito, sem formatação adicional.
Se não conseguir entender o áudio, retorne "{AUDIO_NOT_UNDERSTOOD}".
Mantenha números como dígitos (ex: "50" e não "cinquenta")."""

PARSE_INSTRUCTIONS = """INSTRUÇÕES:
1. Identifique a INTENÇÃO principal da mensagem
2. Extraia os DADOS relevantes (valor, descrição, categoria, conta, parcelas)
3. Atribua um nível de CONFIANÇA de 0.0 a 1.0

INTENÇÕES VÁLIDAS:
- REGISTER_EXPENSE: registrar um gasto (gastei, paguei, comprei)
- REGISTER_INCOME: registrar uma receita (recebi, entrou, ganhei, caiu)
- TRANSFER: transferir entre contas (transferi, movi, passei)
- QUERY_BALANCE: consultar o resumo do mês (quanto gastei, saldo, sobrou)
- QUERY_CATEGORY: consultar uma categoria específica (quanto em alimentação)
- QUERY_GOAL: consultar uma meta (como está minha meta)
- QUERY_ACCOUNT: consultar o saldo de uma conta (quanto tem na poupança)
- GREETING: cumprimentos e agradecimentos (oi, bom dia, obrigado)
- UNKNOWN: não foi possível identificar

REGRAS DE VALOR:
- "50" = 50.00 reais; "50,90" = 50.90 reais; "R$ 50" = 50.00 reais
- Retorne o valor em REAIS (não centavos)
- Se o usuário NÃO mencionar um valor numérico, retorne "amount": null
- NUNCA retorne "amount": 0; use null quando não houver valor explícito
- Sem valor: "paguei a luz", "chegou o VR", "recebi o salário"
- Com valor: "paguei 200 de luz", "recebi 5000", "gastei 50"

REGRAS DE CATEGORIA E CONTA:
- Sugira em categoryHint a categoria mais provável da lista do usuário
- Se a mensagem citar a forma de pagamento ("no cartão", "no débito", "com o flash"), preencha accountHint
- Se não conseguir identificar, deixe o campo vazio

REGRAS DE PARCELAMENTO:
- "em 10x", "parcelado em 3 vezes" → isInstallment: true, totalInstallments: número de parcelas
- amount é sempre o valor TOTAL da compra

REGRAS DE DATA:
- Só preencha "date" (AAAA-MM-DD) quando o usuário citar uma data explícita ("ontem", "dia 5")

Responda APENAS com JSON válido no formato:
{
  "intent": "REGISTER_EXPENSE" | "REGISTER_INCOME" | "TRANSFER" | "QUERY_BALANCE" | "QUERY_CATEGORY" | "QUERY_GOAL" | "QUERY_ACCOUNT" | "GREETING" | "UNKNOWN",
  "confidence": 0.0 a 1.0,
  "data": {
    // REGISTER_EXPENSE:
    "amount": número em reais ou null, "description": "...", "categoryHint": "...",
    "accountHint": "...", "isInstallment": false, "totalInstallments": null, "date": null

    // REGISTER_INCOME:
    "amount": número em reais ou null, "description": "...", "incomeSourceHint": "...", "accountHint": "..."

    // TRANSFER:
    "amount": número em reais, "fromAccountHint": "...", "toAccountHint": "..."

    // QUERY_*:
    "queryType": "balance" | "category" | "goal" | "account",
    "categoryName": "...", "goalName": "...", "accountName": "...", "period": "month"
  }
}

EXEMPLOS:
"gastei 50 no mercado" → {"intent": "REGISTER_EXPENSE", "confidence": 0.95, "data": {"amount": 50.00, "description": "mercado", "categoryHint": "Mercado"}}
"paguei a conta de luz" → {"intent": "REGISTER_EXPENSE", "confidence": 0.88, "data": {"amount": null, "description": "conta de luz", "categoryHint": "Energia"}}
"comprei uma TV de 2000 em 10x no cartão" → {"intent": "REGISTER_EXPENSE", "confidence": 0.93, "data": {"amount": 2000.00, "description": "TV", "categoryHint": "Eletrônicos", "accountHint": "cartão", "isInstallment": true, "totalInstallments": 10}}
"recebi 5000 de salário" → {"intent": "REGISTER_INCOME", "confidence": 0.95, "data": {"amount": 5000.00, "description": "salário", "incomeSourceHint": "Salário"}}
"chegou o VR" → {"intent": "REGISTER_INCOME", "confidence": 0.85, "data": {"amount": null, "description": "VR", "incomeSourceHint": "Vale Refeição"}}
"transferi 500 da conta corrente pra poupança" → {"intent": "TRANSFER", "confidence": 0.90, "data": {"amount": 500.00, "fromAccountHint": "conta corrente", "toAccountHint": "poupança"}}
"quanto gastei esse mês?" → {"intent": "QUERY_BALANCE", "confidence": 0.95, "data": {"queryType": "balance", "period": "month"}}
"quanto sobrou de alimentação?" → {"intent": "QUERY_CATEGORY", "confidence": 0.90, "data": {"queryType": "category", "categoryName": "Alimentação", "period": "month"}}
"como tá minha meta da viagem?" → {"intent": "QUERY_GOAL", "confidence": 0.88, "data": {"queryType": "goal", "goalName": "viagem"}}
"quanto tenho na poupança?" → {"intent": "QUERY_ACCOUNT", "confidence": 0.90, "data": {"queryType": "account", "accountName": "poupança"}}
"oi" → {"intent": "GREETING", "confidence": 0.90, "data": null}"""


def _format_reais(amount: int) -> str:
    return f"R$ {amount / 100:.2f}"


def build_context_section(context: UserContext) -> str:
    """Describe the user's budget so the model can pick real names."""
    categories = ", ".join(c.name for c in context.categories) or "Nenhuma"
    income_sources = ", ".join(s.name for s in context.income_sources) or "Nenhuma"
    goals = ", ".join(g.name for g in context.goals) or "Nenhuma"
    accounts = ", ".join(
        f"{a.name} ({ACCOUNT_TYPE_LABELS.get(a.type, a.type)})" for a in context.accounts
    ) or "Nenhuma"

    lines = [
        "CONTEXTO:",
        f"- Mês/Ano atual: {context.current_month:02d}/{context.current_year}",
        f"- Categorias de despesa: {categories}",
        f"- Fontes de renda: {income_sources}",
        f"- Metas: {goals}",
        f"- Contas: {accounts}",
    ]

    pending_incomes = [t for t in context.pending_transactions if t.type == "income"]
    pending_expenses = [t for t in context.pending_transactions if t.type == "expense"]
    if pending_incomes or pending_expenses:
        lines.append("")
        lines.append("TRANSAÇÕES PENDENTES ESTE MÊS:")
        if pending_incomes:
            lines.append("Receitas aguardando:")
            for t in pending_incomes:
                name = t.income_source_name or t.description or "Receita"
                lines.append(f"  - {name}: {_format_reais(t.amount)}")
        if pending_expenses:
            lines.append("Despesas aguardando:")
            for t in pending_expenses:
                name = t.category_name or t.description or "Despesa"
                lines.append(f"  - {name}: {_format_reais(t.amount)}")

    return "\n".join(lines)


def build_system_prompt(context: UserContext) -> str:
    return (
        "Você é um assistente financeiro brasileiro. Analise a mensagem do usuário "
        "e extraia a intenção e os dados financeiros.\n\n"
        f"{build_context_section(context)}\n\n"
        f"{PARSE_INSTRUCTIONS}"
    )
